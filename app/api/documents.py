"""API endpoints for compliance document generation and post-processing."""

from fastapi import APIRouter, HTTPException, status

from app.chains.generate_compliance_sections import is_placeholder
from app.chains.improve_document import improve_document_with_report
from app.core.crosswalk import generate_crosswalk
from app.core.errors import SectionGenerationFailure, SpecificationNotFoundError
from app.core.logging import get_logger
from app.core.output_validator import finalize_generated_document
from app.core.schemas_generation import (
    CrosswalkReport,
    CrosswalkRequest,
    FinalizeRequest,
    FinalizeResponse,
    ImproveDocumentRequest,
    ImproveDocumentResponse,
    SectionReport,
    StructureRequest,
    StructureResponse,
)
from app.core.spec_loader import get_spec_loader
from app.core.structure_builder import build_deterministic_structure

logger = get_logger(__name__)

router = APIRouter(prefix="/documents")


def _not_found(e: SpecificationNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/improve", response_model=ImproveDocumentResponse)
async def improve(body: ImproveDocumentRequest) -> ImproveDocumentResponse:
    """
    Generate a complete compliance document from uploaded evidence.

    Returns:
        Final document text, metadata, per-section summary and validation issues

    Raises:
        HTTPException 404: Unknown module
        HTTPException 502: A high-priority section could not be generated
    """
    try:
        result = await improve_document_with_report(
            body.existing_documents,
            body.checklist,
            body.missing_requirements,
            body.coverage_map,
            module_id=body.module_id,
            submodule=body.submodule,
            document_name=body.document_name,
            answers=body.answers,
        )
    except SpecificationNotFoundError as e:
        raise _not_found(e) from e
    except SectionGenerationFailure as e:
        logger.error(f"Document generation failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return ImproveDocumentResponse(
        content=result.content,
        metadata=result.metadata,
        sections=[
            SectionReport(id=s.id, name=s.name, chars=len(s.content), placeholder=is_placeholder(s))
            for s in result.sections
        ],
        validation_issues=result.validation_issues,
    )


@router.post("/structure", response_model=StructureResponse)
async def structure(body: StructureRequest) -> StructureResponse:
    """Deterministic, specification-grounded outline for a module/submodule."""
    try:
        text = build_deterministic_structure(
            body.module_id,
            body.submodule,
            answers=body.answers,
            document_name=body.document_name,
        )
        submodule_spec = get_spec_loader().find_submodule_spec_by_name(
            body.module_id, body.document_name, body.submodule
        )
    except SpecificationNotFoundError as e:
        raise _not_found(e) from e

    return StructureResponse(
        module_id=body.module_id,
        submodule_code=submodule_spec.code if submodule_spec else None,
        structure=text,
    )


@router.post("/finalize", response_model=FinalizeResponse)
async def finalize(body: FinalizeRequest) -> FinalizeResponse:
    """Sanitize a generated document, enforce the signature boundary and validate it."""
    content, result = finalize_generated_document(body.text, strip_annotations=body.strip_annotations)
    return FinalizeResponse(
        content=content,
        valid=result.valid,
        issues=result.issues,
        warnings=[w.message for w in result.warnings],
    )


@router.post("/crosswalk", response_model=CrosswalkReport)
async def crosswalk(body: CrosswalkRequest) -> CrosswalkReport:
    """Map specification requirements to evidence in a document."""
    try:
        return generate_crosswalk(
            body.document,
            body.module_id,
            submodule=body.submodule,
            document_name=body.document_name,
        )
    except SpecificationNotFoundError as e:
        raise _not_found(e) from e
