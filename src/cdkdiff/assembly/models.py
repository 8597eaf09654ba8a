"""Data models for synthesized cloud assemblies."""

from __future__ import annotations

from pydantic import BaseModel, Field

STACK_ARTIFACT = "aws:cloudformation:stack"
NESTED_ASSEMBLY_ARTIFACT = "cdk:cloud-assembly"
MANIFEST_FILE = "manifest.json"


class Stage(BaseModel):
    """A deployable stack inside a cloud assembly."""

    artifact_id: str
    display_name: str = ""  # hierarchical id, e.g. "Prod/Service"
    template_file: str = ""
    assembly_dir: str
    root_dir: str = ""  # top-level cdk.out the stack was synthesized into
    dependencies: list[str] = Field(default_factory=list)
    nested_assembly: str | None = None  # None for stacks of the main assembly

    def model_post_init(self, __context: object) -> None:
        if not self.display_name:
            self.display_name = self.artifact_id
        if not self.root_dir:
            self.root_dir = self.assembly_dir

    @property
    def in_main_assembly(self) -> bool:
        return self.nested_assembly is None


class CloudAssembly(BaseModel):
    """All stacks of a cdk.out directory, in diff order."""

    directory: str
    version: str = ""
    stages: list[Stage] = Field(default_factory=list)

    @property
    def main_stages(self) -> list[Stage]:
        return [s for s in self.stages if s.in_main_assembly]
