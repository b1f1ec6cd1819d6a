"""
JSON Patch operation model.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class PatchOperation(BaseModel):
    """Single RFC 6902 operation produced by the patch generator."""

    model_config = {"frozen": True}

    op: Literal["add", "replace", "remove"]
    path: str = Field(..., description="JSON pointer addressing the target location")
    value: Any = None

    @classmethod
    def add(cls, path: str, value: Any) -> "PatchOperation":
        return cls(op="add", path=path, value=value)

    @classmethod
    def replace(cls, path: str, value: Any) -> "PatchOperation":
        return cls(op="replace", path=path, value=value)

    @classmethod
    def remove(cls, path: str) -> "PatchOperation":
        return cls(op="remove", path=path)

    def to_json_patch(self) -> dict[str, Any]:
        """Serialise as ``{op, path, value}``; ``remove`` carries no value."""
        operation: dict[str, Any] = {"op": self.op, "path": self.path}
        if self.op != "remove":
            operation["value"] = self.value
        return operation


def to_json_patch(operations: list[PatchOperation]) -> list[dict[str, Any]]:
    return [operation.to_json_patch() for operation in operations]
