"""API endpoints for reading Primus GFS specification records."""

from fastapi import APIRouter, HTTPException, Path, status
from fastapi.responses import PlainTextResponse

from app.core.errors import SpecificationNotFoundError
from app.core.schemas_specification import ModuleSpec, SubmoduleSpec
from app.core.spec_loader import get_spec_loader
from app.core.structure_builder import build_requirements_list

router = APIRouter(prefix="/specifications")


@router.get("/modules/{module_id}", response_model=ModuleSpec)
async def get_module(module_id: str = Path(..., description="Module number, e.g. '5'")) -> ModuleSpec:
    try:
        return get_spec_loader().load_module_spec(module_id)
    except SpecificationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/modules/{module_id}/submodules/{code}", response_model=SubmoduleSpec)
async def get_submodule(
    module_id: str = Path(..., description="Module number"),
    code: str = Path(..., description="Submodule code, e.g. '5.12'"),
) -> SubmoduleSpec:
    """
    Get a submodule specification.

    Submodules stored as sub-submodule folders are returned aggregated.
    """
    try:
        return get_spec_loader().load_submodule_spec(module_id, code)
    except SpecificationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/modules/{module_id}/submodules/{code}/requirements", response_class=PlainTextResponse)
async def get_requirements_list(
    module_id: str = Path(..., description="Module number"),
    code: str = Path(..., description="Submodule code"),
) -> str:
    """Flattened requirement list as used in generation prompts."""
    try:
        # Exact lookup first so an unknown code is a 404 rather than a module-only dump
        get_spec_loader().load_submodule_spec(module_id, code)
        return build_requirements_list(module_id, code)
    except SpecificationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
