"""Pydantic schemas for Primus GFS specification records.

Specification records are static JSON files deployed with the service. All
models are frozen: once loaded and cached they are shared across requests.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class SpecModel(BaseModel):
    """Base for immutable specification records."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class SubmoduleRequirement(SpecModel):
    """A single compliance obligation within a submodule."""

    code: str
    required: bool = True
    text: str
    keywords: list[str] = Field(default_factory=list)
    mandatory_statements: list[str] = Field(default_factory=list)
    monitoring_expectations: str = ""
    verification_expectations: str = ""
    risk_level: Literal["high", "medium", "low"] | None = None


class SubmoduleReference(SpecModel):
    """Submodule entry declared in a module specification."""

    code: str
    name: str
    alias: str | None = None
    micro_inject: list[str] = Field(default_factory=list)


class SectionTemplate(SpecModel):
    """One section of the fixed module document structure."""

    number: int
    title: str
    required: bool = True
    min_paragraphs: int = 1
    content_guidance: str = ""
    subsections: list[str] = Field(default_factory=list)


class DocumentStructureTemplate(SpecModel):
    sections: list[SectionTemplate]


class ModuleSpec(SpecModel):
    """Module-level metadata, submodule catalog and document structure."""

    module: str
    module_name: str
    description: str = ""
    scope: str = ""
    submodules: list[SubmoduleReference] = Field(default_factory=list)
    document_structure_template: DocumentStructureTemplate
    compliance_keywords: dict[str, list[str]] = Field(default_factory=dict)


class SubmoduleSpec(SpecModel):
    """A specific checklist under a module."""

    code: str
    title: str
    module_name: str = ""
    description: str = ""
    applies_to: list[str] = Field(default_factory=list)
    requirements: list[SubmoduleRequirement]
    micro_inject: list[str] = Field(default_factory=list)
    capa_inject: list[str] = Field(default_factory=list)
    traceability_inject: list[str] = Field(default_factory=list)
    hazard_inject: list[str] = Field(default_factory=list)
    records_inject: list[str] = Field(default_factory=list)
    has_sub_submodules: bool = False

    @property
    def required_requirements(self) -> list[SubmoduleRequirement]:
        return [req for req in self.requirements if req.required]


class SubSubmoduleSpec(SpecModel):
    """Slice of a very large submodule (e.g. 4.05.01 under 4.05)."""

    code: str
    parent_code: str
    title: str
    requirements: list[SubmoduleRequirement]
    module_name: str | None = None
    description: str | None = None
    applies_to: list[str] = Field(default_factory=list)
    micro_inject: list[str] = Field(default_factory=list)
    capa_inject: list[str] = Field(default_factory=list)
    traceability_inject: list[str] = Field(default_factory=list)
    hazard_inject: list[str] = Field(default_factory=list)
    records_inject: list[str] = Field(default_factory=list)

    def as_submodule_spec(self, module_id: str) -> SubmoduleSpec:
        """Expose a sub-submodule through the submodule interface."""
        return SubmoduleSpec(
            code=self.code,
            title=self.title,
            module_name=self.module_name or f"Module {module_id}",
            description=self.description or self.title,
            applies_to=self.applies_to,
            requirements=self.requirements,
            micro_inject=self.micro_inject,
            capa_inject=self.capa_inject,
            traceability_inject=self.traceability_inject,
            hazard_inject=self.hazard_inject,
            records_inject=self.records_inject,
        )


class MicroRules(SpecModel):
    """Supplementary rule set for a category (pest, chemical, ...)."""

    category: str
    rules: dict[str, str] = Field(default_factory=dict)
    applicability: str | None = None
