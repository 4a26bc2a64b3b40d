"""Generate a complete compliance document section by section.

Pipeline: specification context -> evidence cache -> metadata, individual
sections and batched sections (concurrently) -> per-section validation ->
assembly.

Only a missing specification or an exhausted individually generated section
propagates; everything else degrades to placeholders or fallback metadata.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from app.chains.generate_compliance_sections import (
    GenerationContext,
    generate_batchable_sections_with_fallback,
    generate_individual_sections,
    is_placeholder,
)
from app.core.compliance_sections import COMPLIANCE_SECTIONS
from app.core.config import Settings, get_settings
from app.core.document_assembler import assemble_final_document
from app.core.errors import SectionGenerationFailure
from app.core.evidence_extractor import build_evidence_cache
from app.core.llm import InvokeFn, invoke_claude, parse_llm_json
from app.core.logging import get_logger, log_with_context
from app.core.output_validator import validate_llm_output
from app.core.retry import RetryPolicy, with_retry
from app.core.schemas_generation import (
    ComplianceSection,
    DocumentMetadata,
    GeneratedSection,
    SourceDocument,
)
from app.core.spec_loader import SpecificationLoader
from app.core.structure_builder import (
    build_structured_sections,
    format_requirements_list,
    resolve_structure_context,
)

logger = get_logger(__name__)


class _MetadataDraft(BaseModel):
    """Metadata as returned by the model; every field optional."""

    title: str | None = None
    doc_number: str | None = None
    version: str | None = None
    effective_date: str | None = None
    owner: str | None = None
    purpose: str | None = None


@dataclass
class ImprovedDocument:
    content: str
    metadata: DocumentMetadata
    sections: list[GeneratedSection]
    validation_issues: list[str] = field(default_factory=list)
    submodule_code: str | None = None

    @property
    def placeholder_ids(self) -> list[int]:
        return [s.id for s in self.sections if is_placeholder(s)]


# =============================================================================
# Metadata
# =============================================================================


def fallback_metadata(now: datetime) -> DocumentMetadata:
    return DocumentMetadata(
        doc_number=f"DOC-{int(now.timestamp() * 1000)}",
        effective_date=now.date().isoformat(),
    )


def _checklist_summary(checklist: Any, limit: int = 1000) -> str:
    if checklist is None:
        return "No checklist supplied."
    if isinstance(checklist, str):
        return checklist
    return json.dumps(checklist, default=str)[:limit]


def build_metadata_prompt(documents: Sequence[SourceDocument], checklist: Any) -> str:
    document_summary = "\n".join(f"{i}. {doc.file_name}" for i, doc in enumerate(documents, start=1))
    return f"""You are a compliance document expert. Generate metadata for a Primus GFS compliance document.

UPLOADED DOCUMENTS:
{document_summary or "None"}

REQUIREMENTS SUMMARY:
{_checklist_summary(checklist)}

Generate the following in JSON format (ONLY JSON, no explanation):
{{
  "title": "Professional document title",
  "doc_number": "DOC-XXXX-YY format",
  "version": "1.0",
  "effective_date": "YYYY-MM-DD",
  "owner": "Department or role responsible",
  "purpose": "One sentence purpose statement"
}}"""


async def generate_document_metadata(
    documents: Sequence[SourceDocument],
    checklist: Any,
    invoke: InvokeFn = invoke_claude,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> DocumentMetadata:
    """
    Ask the model for document front matter.

    One attempt, and never raises. A failed call or unparseable answer yields the
    deterministic fallback, and missing fields are filled from it.
    """
    settings = settings or get_settings()
    fallback = fallback_metadata(now or datetime.now(UTC))
    prompt = build_metadata_prompt(documents, checklist)

    try:
        response = await with_retry(
            lambda: invoke(prompt, settings.METADATA_MAX_TOKENS),
            RetryPolicy(
                max_attempts=1,
                initial_delay=settings.SECTION_INITIAL_BACKOFF_SECONDS,
                timeout_seconds=settings.SECTION_TIMEOUT_SECONDS,
            ),
            label="Document metadata",
        )
        draft = parse_llm_json(response.text, _MetadataDraft)
    except SectionGenerationFailure as e:
        logger.warning(f"Metadata generation failed, using defaults: {e}")
        return fallback
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Metadata response was not valid JSON, using defaults: {e}")
        return fallback

    merged = {**fallback.model_dump(), **draft.model_dump(exclude_none=True)}
    return DocumentMetadata(**merged)


# =============================================================================
# Orchestration
# =============================================================================


def _validate_sections(sections: list[GeneratedSection]) -> list[str]:
    issues: list[str] = []
    for section in sections:
        result = validate_llm_output(section.content, section_id=section.id)
        for message in result.issues:
            log_with_context(logger, logging.WARNING, message, section_id=section.id)
        issues.extend(result.issues)
    return issues


async def improve_document_with_report(
    existing_documents: Sequence[SourceDocument],
    checklist: Any = None,
    missing_requirements: Sequence[Any] | None = None,
    coverage_map: Mapping[str, str] | None = None,
    module_id: str | None = None,
    submodule: str | None = None,
    document_name: str | None = None,
    answers: dict[str, Any] | None = None,
    *,
    invoke: InvokeFn = invoke_claude,
    sections: Sequence[ComplianceSection] = COMPLIANCE_SECTIONS,
    settings: Settings | None = None,
    loader: SpecificationLoader | None = None,
    now: datetime | None = None,
) -> ImprovedDocument:
    """
    Generate, validate and assemble a complete compliance document.

    Args:
        existing_documents: Uploaded evidence documents as plain text
        checklist: Requirement list or free-text checklist; defaults to the
            resolved submodule's required requirements
        missing_requirements: Gaps identified by document analysis
        coverage_map: Requirement code -> covered | partial | missing
        module_id: Primus module; enables specification-grounded prompts
        submodule: Submodule code or name
        document_name: Free-text document name used for submodule resolution
        answers: Questionnaire answers surfaced in section 1 guidance
        invoke: LLM collaborator
        sections: Section catalog to generate
        settings: Settings override
        loader: Specification loader override
        now: Generation timestamp

    Returns:
        ImprovedDocument with the final text and per-section results

    Raises:
        SpecificationNotFoundError: If module_id names an unknown module
        SectionGenerationFailure: If an individually generated section
            exhausts its retries
    """
    settings = settings or get_settings()
    now = now or datetime.now(UTC)
    documents = list(existing_documents)

    logger.info(f"Starting section-by-section document generation ({len(sections)} sections)")

    required_content: dict[int, list[str]] = {}
    requirements_outline: str | None = None
    submodule_code: str | None = None

    if module_id:
        structure = resolve_structure_context(module_id, submodule, answers, document_name, loader)
        required_content = {s.number: s.required_content for s in build_structured_sections(structure)}
        requirements_outline = format_requirements_list(structure.module_spec, structure.submodule_spec)
        if structure.submodule_spec:
            submodule_code = structure.submodule_spec.code
            if checklist is None:
                checklist = [req.model_dump() for req in structure.submodule_spec.required_requirements]

    context = GenerationContext(
        documents=documents,
        checklist=checklist,
        missing_requirements=list(missing_requirements or []),
        coverage_map=dict(coverage_map or {}),
        evidence_cache=build_evidence_cache(sections, documents, checklist, settings.EVIDENCE_CHAR_BUDGET),
        required_content=required_content,
        requirements_outline=requirements_outline,
    )

    individual = [s for s in sections if not s.is_batchable]
    batchable = [s for s in sections if s.is_batchable]

    metadata, individual_results, batched_results = await asyncio.gather(
        generate_document_metadata(documents, checklist, invoke, settings, now),
        generate_individual_sections(individual, context, invoke, settings=settings),
        generate_batchable_sections_with_fallback(batchable, context, invoke, settings),
    )

    generated = [*individual_results, *batched_results]
    issues = _validate_sections(generated)

    content = assemble_final_document(metadata, generated, documents, now)
    logger.info(
        f"Document generation complete ({len(content)} chars, {len(generated)} sections, "
        f"{len(issues)} validation issue(s))"
    )

    return ImprovedDocument(
        content=content,
        metadata=metadata,
        sections=sorted(generated, key=lambda s: s.id),
        validation_issues=issues,
        submodule_code=submodule_code,
    )


async def improve_document(
    existing_documents: Sequence[SourceDocument],
    checklist: Any = None,
    missing_requirements: Sequence[Any] | None = None,
    coverage_map: Mapping[str, str] | None = None,
    **kwargs: Any,
) -> str:
    """Generate a complete compliance document and return its text."""
    result = await improve_document_with_report(
        existing_documents, checklist, missing_requirements, coverage_map, **kwargs
    )
    return result.content
