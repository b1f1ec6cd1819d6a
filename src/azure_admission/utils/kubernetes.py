"""
Kubernetes utilities for the admission controller.

This module provides the object store reader used by the release catalog and
the policy handlers. The kubernetes client is synchronous, so every call is
run in a worker thread to keep the event loop serving admission reviews.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from azure_admission.constants import RESOURCE_KINDS
from azure_admission.errors import InvalidRequestError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

SERVICE_NAME = "Kubernetes API"


def load_kubernetes_config() -> None:
    """
    Load Kubernetes client configuration.

    Tries the in-cluster service account first and falls back to the local
    kubeconfig for development.
    """
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise


class KubernetesObjectStore:
    """
    Read-only access to custom resources by kind.

    Kinds are resolved through ``RESOURCE_KINDS``; cluster scoped kinds ignore
    the namespace argument.
    """

    def __init__(
        self,
        api: client.CustomObjectsApi | None = None,
        request_timeout: float | None = None,
    ):
        self._api = api or client.CustomObjectsApi()
        self._request_timeout = request_timeout

    @staticmethod
    def _resolve(kind: str) -> tuple[str, str, str, bool]:
        try:
            return RESOURCE_KINDS[kind]
        except KeyError:
            raise InvalidRequestError(f"unknown resource kind '{kind}'", field="kind")

    def _sync_list(self, kind: str, namespace: str | None) -> list[dict[str, Any]]:
        group, version, plural, namespaced = self._resolve(kind)
        kwargs: dict[str, Any] = {}
        if self._request_timeout is not None:
            kwargs["_request_timeout"] = self._request_timeout
        try:
            if namespaced and namespace:
                response = self._api.list_namespaced_custom_object(
                    group, version, namespace, plural, **kwargs
                )
            else:
                response = self._api.list_cluster_custom_object(
                    group, version, plural, **kwargs
                )
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise UpstreamUnavailableError(
                SERVICE_NAME, f"failed to list {plural}: {e}", cause=e
            ) from e
        return list(response.get("items", []))

    def _sync_get(
        self, kind: str, name: str, namespace: str | None
    ) -> dict[str, Any] | None:
        group, version, plural, namespaced = self._resolve(kind)
        kwargs: dict[str, Any] = {}
        if self._request_timeout is not None:
            kwargs["_request_timeout"] = self._request_timeout
        try:
            if namespaced:
                if not namespace:
                    raise InvalidRequestError(
                        f"{kind} is namespaced, a namespace is required",
                        field="namespace",
                    )
                return self._api.get_namespaced_custom_object(
                    group, version, namespace, plural, name, **kwargs
                )
            return self._api.get_cluster_custom_object(
                group, version, plural, name, **kwargs
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise UpstreamUnavailableError(
                SERVICE_NAME, f"failed to get {plural}/{name}: {e}", cause=e
            ) from e
        except urllib3.exceptions.HTTPError as e:
            raise UpstreamUnavailableError(
                SERVICE_NAME, f"failed to get {plural}/{name}: {e}", cause=e
            ) from e

    async def list(self, kind: str, namespace: str | None = None) -> list[dict[str, Any]]:
        """List every object of ``kind``, across all namespaces by default."""
        return await asyncio.to_thread(self._sync_list, kind, namespace)

    async def get(
        self, kind: str, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        """Fetch one object, returning None when it does not exist."""
        return await asyncio.to_thread(self._sync_get, kind, name, namespace)
