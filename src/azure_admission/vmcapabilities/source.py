"""
Capability sources for the VM capability cache.

``AzureResourceSkuSource`` reads the Azure Compute Resource SKU API with a
service principal. Pagination is resolved here so the cache always receives
a fully materialised list.
"""

import asyncio
import logging
import time
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from azure_admission.constants import SKU_RESOURCE_TYPE_VIRTUAL_MACHINES
from azure_admission.errors import (
    ConfigurationError,
    UpstreamInvalidResponseError,
    UpstreamUnavailableError,
)
from azure_admission.models.capability import ResourceSku
from azure_admission.settings import Settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "Azure Resource SKU API"

# Refresh the access token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60


class CapabilitySource(Protocol):
    """Fetches the raw capability list for a region."""

    async def list_capabilities(
        self, region: str, filter_expr: str
    ) -> list[ResourceSku]: ...


class AzureResourceSkuSource:
    """
    Capability source backed by the Azure Resource SKU API.

    Authenticates with the client credentials flow and caches the access
    token until shortly before it expires.
    """

    def __init__(
        self,
        subscription_id: str,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        resource_manager_url: str = "https://management.azure.com",
        login_url: str = "https://login.microsoftonline.com",
        api_version: str = "2019-04-01",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not all([subscription_id, tenant_id, client_id, client_secret]):
            raise ConfigurationError(
                "Azure service principal credentials are incomplete",
                user_action=(
                    "Set AZURE_SUBSCRIPTION_ID, AZURE_TENANT_ID, "
                    "AZURE_CLIENT_ID and AZURE_CLIENT_SECRET"
                ),
            )
        self.subscription_id = subscription_id
        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret
        self.resource_manager_url = resource_manager_url.rstrip("/")
        self.login_url = login_url.rstrip("/")
        self.api_version = api_version

        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "AzureResourceSkuSource":
        return cls(
            subscription_id=settings.azure_subscription_id,
            tenant_id=settings.azure_tenant_id,
            client_id=settings.azure_client_id,
            client_secret=settings.azure_client_secret,
            resource_manager_url=settings.azure_resource_manager_url,
            login_url=settings.azure_login_url,
            api_version=settings.azure_sku_api_version,
            transport=transport,
        )

    @property
    def skus_url(self) -> str:
        return (
            f"{self.resource_manager_url}/subscriptions/{self.subscription_id}"
            "/providers/Microsoft.Compute/skus"
        )

    def _token_valid(self) -> bool:
        return (
            self._token is not None
            and time.monotonic() < self._token_expires_at - TOKEN_EXPIRY_MARGIN
        )

    async def _access_token(self) -> str:
        if self._token_valid():
            return self._token  # type: ignore[return-value]

        async with self._token_lock:
            if self._token_valid():
                return self._token  # type: ignore[return-value]

            url = f"{self.login_url}/{self.tenant_id}/oauth2/v2.0/token"
            payload = await self._request_json(
                "POST",
                url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self._client_secret,
                    "scope": f"{self.resource_manager_url}/.default",
                },
            )
            try:
                token = payload["access_token"]
                expires_in = float(payload.get("expires_in", 3600))
            except (KeyError, TypeError, ValueError) as e:
                raise UpstreamInvalidResponseError(
                    SERVICE_NAME, "token response has no usable access_token", cause=e
                ) from e

            self._token = token
            self._token_expires_at = time.monotonic() + expires_in
            logger.debug("Acquired Azure Resource Manager access token")
            return token

    async def _request_json(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailableError(
                SERVICE_NAME,
                f"{method} {e.request.url} returned HTTP {e.response.status_code}",
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(
                SERVICE_NAME, f"{method} {url} failed: {e}", cause=e
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamInvalidResponseError(
                SERVICE_NAME, f"{method} {url} returned a non-JSON body", cause=e
            ) from e
        if not isinstance(payload, dict):
            raise UpstreamInvalidResponseError(
                SERVICE_NAME, f"{method} {url} returned a non-object body"
            )
        return payload

    async def list_capabilities(
        self, region: str, filter_expr: str
    ) -> list[ResourceSku]:
        """
        List every virtual machine SKU matching ``filter_expr``.

        Args:
            region: Region being fetched, used for logging
            filter_expr: OData filter passed as ``$filter``

        Returns:
            All VM SKUs across every page

        Raises:
            UpstreamUnavailableError: On transport errors or HTTP error status
            UpstreamInvalidResponseError: On undecodable bodies
        """
        token = await self._access_token()
        headers = {"Authorization": f"Bearer {token}"}

        skus: list[ResourceSku] = []
        url: str | None = self.skus_url
        params: dict[str, str] | None = {
            "api-version": self.api_version,
            "$filter": filter_expr,
        }
        pages = 0
        while url:
            payload = await self._request_json("GET", url, params=params, headers=headers)
            pages += 1
            try:
                for item in payload.get("value", []):
                    sku = ResourceSku.model_validate(item)
                    if sku.resource_type == SKU_RESOURCE_TYPE_VIRTUAL_MACHINES:
                        skus.append(sku)
            except (ValidationError, TypeError) as e:
                raise UpstreamInvalidResponseError(
                    SERVICE_NAME, f"malformed SKU entry: {e}", cause=e
                ) from e
            # nextLink already carries every query parameter
            url = payload.get("nextLink") or None
            params = None

        logger.debug(
            f"Fetched {len(skus)} VM SKUs for region {region} in {pages} page(s)",
            extra={"region": region, "sku_count": len(skus)},
        )
        return skus

    async def aclose(self) -> None:
        await self._client.aclose()
