"""
Structural patch generation.

``diff`` turns two snapshots of a resource into the JSON Patch that
transforms the first into the second. Traversal order is deterministic:

* object keys are visited in sorted order; a key only in ``before`` yields
  ``remove``, a key only in ``after`` yields ``add``, a shared key recurses;
* arrays are compared by index: the common prefix recurses element-wise,
  then the extra tail of ``after`` is added in ascending index order, then
  the extra tail of ``before`` is removed in descending index order;
* any other difference (including a change of JSON type) is a ``replace``.

Arrays are never matched by content, so an insertion in the middle of a list
shows up as replacements of the shifted elements plus one trailing ``add``.
"""

import json
from collections.abc import Iterable
from typing import Any

from jsonpointer import escape
from pydantic import BaseModel

from azure_admission.errors import SerializationError
from azure_admission.models.patch import PatchOperation


def to_canonical(document: Any) -> Any:
    """
    Convert a resource into a plain JSON tree.

    Accepts pydantic models, JSON text (``str`` or ``bytes``) and anything
    ``json`` can serialise.

    Raises:
        SerializationError: If the document is not representable as JSON
    """
    try:
        if isinstance(document, BaseModel):
            return document.model_dump(mode="json", by_alias=True, exclude_none=True)
        if isinstance(document, (bytes, bytearray, str)):
            return json.loads(document)
        return json.loads(json.dumps(document, allow_nan=False))
    except (TypeError, ValueError) as e:
        raise SerializationError(str(e), cause=e) from e


def _same_value(before: Any, after: Any) -> bool:
    # True == 1 in Python but they are different JSON values
    return type(before) is type(after) and before == after


def _diff_into(
    before: Any, after: Any, path: str, operations: list[PatchOperation]
) -> None:
    if isinstance(before, dict) and isinstance(after, dict):
        for key in sorted(set(before) | set(after)):
            child = f"{path}/{escape(key)}"
            if key not in after:
                operations.append(PatchOperation.remove(child))
            elif key not in before:
                operations.append(PatchOperation.add(child, after[key]))
            else:
                _diff_into(before[key], after[key], child, operations)
        return

    if isinstance(before, list) and isinstance(after, list):
        common = min(len(before), len(after))
        for index in range(common):
            _diff_into(before[index], after[index], f"{path}/{index}", operations)
        for index in range(common, len(after)):
            operations.append(PatchOperation.add(f"{path}/{index}", after[index]))
        for index in reversed(range(common, len(before))):
            operations.append(PatchOperation.remove(f"{path}/{index}"))
        return

    if not _same_value(before, after):
        operations.append(PatchOperation.replace(path, after))


def diff(before: Any, after: Any) -> list[PatchOperation]:
    """
    Compute the patch that transforms ``before`` into ``after``.

    Both inputs are canonicalised first; a serialisation failure of either
    aborts the call without returning a partial result.

    Raises:
        SerializationError: If either document cannot be serialised
    """
    canonical_before = to_canonical(before)
    canonical_after = to_canonical(after)

    operations: list[PatchOperation] = []
    _diff_into(canonical_before, canonical_after, "", operations)
    return operations


def filter_by_path_prefix(
    patches: Iterable[PatchOperation], prefix: str
) -> list[PatchOperation]:
    """Drop every operation whose path starts with ``prefix``."""
    return [patch for patch in patches if not patch.path.startswith(prefix)]


def generate_patches_from(
    before: Any, after: Any, excluded_prefixes: Iterable[str] = ()
) -> list[PatchOperation]:
    """Diff two documents, then drop operations under any excluded prefix."""
    operations = diff(before, after)
    for prefix in excluded_prefixes:
        operations = filter_by_path_prefix(operations, prefix)
    return operations
