"""
Shared plumbing for the admission webhooks.

Each resource kind is described by a ``ResourcePolicy`` registered in a
dispatch table keyed on the kind. The kopf handlers in the per-kind modules
stay thin: they look the policy up, run it under a deadline and translate
engine errors into admission rejections.

Mutating policies edit a copy of the incoming object; the patch generator
diffs the copy against the original and the result is written into the
kopf merge patch.
"""

import asyncio
import copy
import logging
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import jsonpatch
import kopf
from jsonpointer import JsonPointer
from pydantic import BaseModel, ValidationError

from azure_admission.constants import DNS_LABEL_MAX_LENGTH, ORGANIZATION_LABEL
from azure_admission.errors import (
    AdmissionControllerError,
    ConfigurationError,
    InvalidRequestError,
    PatchApplicationError,
)
from azure_admission.models.patch import PatchOperation, to_json_patch
from azure_admission.observability.logging import AdmissionLogger
from azure_admission.observability.metrics import metrics_collector
from azure_admission.patches import generate_patches_from
from azure_admission.releases import (
    ReleaseUpgradeValidator,
    SemanticVersion,
    VersionCatalogReader,
)
from azure_admission.releases.catalog import ObjectStoreReader
from azure_admission.vmcapabilities import VMCapabilityCache

logger = logging.getLogger(__name__)
admission_logger = AdmissionLogger(__name__)

OPERATION_CREATE = "CREATE"
OPERATION_UPDATE = "UPDATE"


@dataclass
class AdmissionEngines:
    """Decision engines shared by every admission review."""

    store: ObjectStoreReader
    catalog: VersionCatalogReader
    upgrades: ReleaseUpgradeValidator
    capabilities: VMCapabilityCache | None = None
    installation_location: str = ""
    base_domain: str = ""
    admission_timeout: float | None = None

    def require_capabilities(self) -> VMCapabilityCache:
        if self.capabilities is None:
            raise ConfigurationError(
                "VM capability lookups are not configured",
                user_action="Provide Azure service principal credentials",
            )
        return self.capabilities


def engines_from_memo(memo: Any) -> AdmissionEngines:
    engines = getattr(memo, "engines", None)
    if engines is None:
        raise ConfigurationError("Admission engines have not been initialised")
    return engines


def as_plain_dict(obj: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Detach a kopf body view into a mutable plain dict."""
    if obj is None:
        return None
    return copy.deepcopy(dict(obj))


_DNS_LABEL_INVALID = re.compile(r"[^a-z0-9-]+")


def as_dns_label_name(value: str) -> str:
    """Lowercase ``value`` and reduce it to the characters a DNS label allows."""
    name = _DNS_LABEL_INVALID.sub("-", value.lower())
    name = re.sub(r"-{2,}", "-", name).strip("-")
    return name[:DNS_LABEL_MAX_LENGTH].rstrip("-")


def normalize_organization_label(document: dict[str, Any]) -> None:
    labels = document.get("metadata", {}).get("labels") or {}
    organization = labels.get(ORGANIZATION_LABEL)
    if not organization:
        return
    normalized = as_dns_label_name(organization)
    if normalized != organization:
        logger.debug(f"Normalizing organization label {organization!r} to {normalized!r}")
        labels[ORGANIZATION_LABEL] = normalized


def parse_release_label(value: str | None, what: str) -> SemanticVersion:
    if not value:
        raise InvalidRequestError(f"{what} has no release version label")
    try:
        return SemanticVersion.parse(value)
    except ValueError as e:
        raise InvalidRequestError(
            f"{what} has an invalid release version label {value!r}", cause=e
        ) from e


class ResourcePolicy:
    """
    Admission rules for one resource kind.

    Subclasses override the hooks they need; the defaults admit everything
    and inject nothing.
    """

    kind: str = ""
    model: type[BaseModel]
    excluded_patch_paths: tuple[str, ...] = ()

    def decode(self, raw: Mapping[str, Any]) -> Any:
        try:
            return self.model.model_validate(raw)
        except ValidationError as e:
            raise InvalidRequestError(
                f"unable to parse {self.kind}: {e}", cause=e
            ) from e

    async def validate_create(self, engines: AdmissionEngines, new) -> None:
        pass

    async def validate_update(self, engines: AdmissionEngines, old, new) -> None:
        pass

    async def mutate_create(
        self, engines: AdmissionEngines, new, document: dict[str, Any], dryrun: bool
    ) -> None:
        pass

    async def mutate_update(
        self,
        engines: AdmissionEngines,
        old,
        new,
        document: dict[str, Any],
        dryrun: bool,
    ) -> None:
        pass

    def _decode_old(self, old: Mapping[str, Any] | None):
        if old is None:
            raise InvalidRequestError(f"UPDATE review of {self.kind} without old object")
        return self.decode(old)

    async def validate(
        self,
        engines: AdmissionEngines,
        operation: str,
        body: Mapping[str, Any],
        old: Mapping[str, Any] | None,
    ) -> None:
        new = self.decode(body)
        if operation == OPERATION_CREATE:
            await self.validate_create(engines, new)
        elif operation == OPERATION_UPDATE:
            await self.validate_update(engines, self._decode_old(old), new)

    async def mutate(
        self,
        engines: AdmissionEngines,
        operation: str,
        body: Mapping[str, Any],
        old: Mapping[str, Any] | None,
        dryrun: bool = False,
    ) -> tuple[list[PatchOperation], dict[str, Any]]:
        """
        Run the mutation hooks for one review.

        Returns:
            The filtered patch operations and the document they produce
        """
        original = as_plain_dict(body) or {}
        document = copy.deepcopy(original)
        new = self.decode(original)
        if operation == OPERATION_CREATE:
            await self.mutate_create(engines, new, document, dryrun)
        elif operation == OPERATION_UPDATE:
            await self.mutate_update(
                engines, self._decode_old(old), new, document, dryrun
            )

        operations = generate_patches_from(
            original, document, self.excluded_patch_paths
        )
        if not operations:
            return [], original
        try:
            patched = jsonpatch.apply_patch(original, to_json_patch(operations))
        except jsonpatch.JsonPatchException as e:
            raise PatchApplicationError(
                f"generated patch does not apply to {self.kind}: {e}", cause=e
            ) from e
        return operations, patched


POLICIES: dict[str, ResourcePolicy] = {}


def register_policy(policy: ResourcePolicy) -> ResourcePolicy:
    POLICIES[policy.kind] = policy
    return policy


def _set_in_patch(patch: dict, parts: list[str], value: Any) -> None:
    node = patch
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            if part in node:
                # A whole-value write above this path already covers it
                return
            child = node[part] = {}
        node = child
    node[parts[-1]] = value


def apply_operations_to_patch(
    patch: dict,
    operations: list[PatchOperation],
    after: Mapping[str, Any],
) -> None:
    """
    Express JSON Patch operations as a kopf merge patch.

    Merge patches cannot address list elements, so an operation below a list
    rewrites the whole list with its value from ``after``.
    """
    for operation in operations:
        parts = JsonPointer(operation.path).parts
        if not parts:
            patch.update(copy.deepcopy(dict(after)))
            continue

        node: Any = after
        list_prefix: list[str] | None = None
        for depth, part in enumerate(parts):
            if isinstance(node, list):
                list_prefix = parts[:depth]
                break
            if not isinstance(node, Mapping) or part not in node:
                break
            node = node[part]

        if list_prefix is not None:
            value = JsonPointer.from_parts(list_prefix).resolve(after)
            _set_in_patch(patch, list_prefix, copy.deepcopy(value))
        elif operation.op == "remove":
            _set_in_patch(patch, parts, None)
        else:
            _set_in_patch(patch, parts, copy.deepcopy(operation.value))


def _reject(
    kind: str,
    name: str,
    operation: str,
    error: AdmissionControllerError,
    start_time: float,
) -> kopf.AdmissionError:
    admission_logger.log_review_denied(
        kind, name, operation, error, time.perf_counter() - start_time
    )
    return error.as_admission_error()


async def run_validation(
    kind: str,
    *,
    body: Mapping[str, Any],
    old: Mapping[str, Any] | None,
    name: str | None,
    namespace: str | None,
    operation: str,
    dryrun: bool,
    memo: Any,
) -> None:
    """
    Run the validating policy of ``kind`` for one admission review.

    Raises:
        kopf.AdmissionError: When the review is rejected
    """
    name = name or ""
    admission_logger.log_review_start(kind, name, namespace, operation, dryrun)
    start_time = time.perf_counter()
    try:
        policy = POLICIES[kind]
        engines = engines_from_memo(memo)
        async with metrics_collector.track_admission(kind, operation, "validate"):
            async with asyncio.timeout(engines.admission_timeout):
                await policy.validate(
                    engines, operation, as_plain_dict(body) or {}, as_plain_dict(old)
                )
    except AdmissionControllerError as e:
        raise _reject(kind, name, operation, e, start_time) from e
    except TimeoutError as e:
        logger.error(f"Validation of {kind} {name} timed out")
        raise kopf.AdmissionError(
            f"Internal error: validation of {kind} {name} timed out", code=500
        ) from e

    admission_logger.log_review_allowed(
        kind, name, operation, time.perf_counter() - start_time
    )


async def run_mutation(
    kind: str,
    *,
    body: Mapping[str, Any],
    old: Mapping[str, Any] | None,
    name: str | None,
    namespace: str | None,
    operation: str,
    dryrun: bool,
    memo: Any,
    patch: dict,
) -> list[PatchOperation]:
    """
    Run the mutating policy of ``kind`` and write its result into ``patch``.

    Returns:
        The JSON Patch operations that were applied

    Raises:
        kopf.AdmissionError: When the review is rejected
    """
    name = name or ""
    admission_logger.log_review_start(kind, name, namespace, operation, dryrun)
    start_time = time.perf_counter()
    try:
        policy = POLICIES[kind]
        engines = engines_from_memo(memo)
        async with metrics_collector.track_admission(kind, operation, "mutate"):
            async with asyncio.timeout(engines.admission_timeout):
                operations, after = await policy.mutate(
                    engines, operation, body, as_plain_dict(old), dryrun
                )
    except AdmissionControllerError as e:
        raise _reject(kind, name, operation, e, start_time) from e
    except TimeoutError as e:
        logger.error(f"Mutation of {kind} {name} timed out")
        raise kopf.AdmissionError(
            f"Internal error: mutation of {kind} {name} timed out", code=500
        ) from e

    apply_operations_to_patch(patch, operations, after)
    admission_logger.log_review_allowed(
        kind,
        name,
        operation,
        time.perf_counter() - start_time,
        patch_count=len(operations),
    )
    return operations
