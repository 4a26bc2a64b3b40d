"""Pydantic schemas for document generation requests and results."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SectionPriority = Literal["high", "medium", "low"]
CoverageStatus = Literal["covered", "partial", "missing"]


class SourceDocument(BaseModel):
    """An uploaded evidence document, already converted to plain text."""

    file_name: str
    text: str


class ComplianceSection(BaseModel):
    """Canonical section of a generated compliance document."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    priority: SectionPriority
    description: str
    is_batchable: bool = False

    @property
    def heading(self) -> str:
        return f"{self.id}. {self.name}"


class GeneratedSection(BaseModel):
    """Output of one section generation call."""

    id: int
    name: str
    content: str


class DocumentMetadata(BaseModel):
    """Front-matter fields for the assembled document."""

    title: str = "Compliance Procedure Document"
    doc_number: str
    version: str = "1.0"
    effective_date: str
    owner: str = "Quality Assurance"
    purpose: str = "This document describes compliance procedures and requirements."


# =============================================================================
# API request / response bodies
# =============================================================================


class ImproveDocumentRequest(BaseModel):
    """Request body for full document generation."""

    existing_documents: list[SourceDocument] = Field(default_factory=list)
    checklist: list[dict[str, Any]] | str | None = None
    missing_requirements: list[Any] = Field(default_factory=list)
    coverage_map: dict[str, CoverageStatus] = Field(default_factory=dict)
    module_id: str | None = None
    submodule: str | None = None
    document_name: str | None = None
    answers: dict[str, Any] | None = None


class SectionReport(BaseModel):
    id: int
    name: str
    chars: int
    placeholder: bool = False


class ImproveDocumentResponse(BaseModel):
    content: str
    metadata: DocumentMetadata
    sections: list[SectionReport]
    validation_issues: list[str] = Field(default_factory=list)


class StructureRequest(BaseModel):
    module_id: str
    submodule: str | None = None
    document_name: str | None = None
    answers: dict[str, Any] | None = None


class StructureResponse(BaseModel):
    module_id: str
    submodule_code: str | None = None
    structure: str


class FinalizeRequest(BaseModel):
    text: str
    strip_annotations: bool = False


class FinalizeResponse(BaseModel):
    content: str
    valid: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CrosswalkRequest(BaseModel):
    document: str
    module_id: str
    submodule: str | None = None
    document_name: str | None = None


class CrosswalkEntry(BaseModel):
    requirement_code: str
    requirement_description: str
    mandatory: bool
    document_section: str | None = None
    evidence: str
    status: Literal["FULFILLED", "GAP"]
    matched_keywords: list[str] = Field(default_factory=list)


class CrosswalkReport(BaseModel):
    module_id: str
    module_name: str
    submodule_code: str | None = None
    generated_date: str
    total_requirements: int
    fulfilled_count: int
    gap_count: int
    entries: list[CrosswalkEntry]
