"""
Pydantic models for Release custom resources.

A Release names a platform version and lists the component versions that
make it up. Only the fields the admission policies read are modelled.
"""

from pydantic import BaseModel, Field

from azure_admission.constants import IGNORE_RELEASE_ANNOTATION


class ObjectMeta(BaseModel):
    """Subset of Kubernetes object metadata."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: str = ""
    namespace: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class ReleaseComponent(BaseModel):
    """Component shipped as part of a release."""

    name: str
    version: str


class ReleaseSpec(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    components: list[ReleaseComponent] = Field(default_factory=list)


class ReleaseRecord(BaseModel):
    """Release custom resource as read from the object store."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: ReleaseSpec = Field(default_factory=ReleaseSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def ignored(self) -> bool:
        """True when the ignore annotation is set to "true" in any casing."""
        value = self.metadata.annotations.get(IGNORE_RELEASE_ANNOTATION, "")
        return value.lower() == "true"

    def component_versions(self) -> dict[str, str]:
        return {component.name: component.version for component in self.spec.components}
