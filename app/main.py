"""Primus compliance engine ASGI app."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.SPEC_ROOT.is_dir():
        logger.info(f"Specification store: {settings.SPEC_ROOT} (provider={settings.LLM_PROVIDER})")
    else:
        logger.warning(f"Specification store not found at {settings.SPEC_ROOT}; grounded generation disabled")
    yield


openapi_tags = [
    {"name": "documents", "description": "Compliance document generation, structure, finalization, crosswalk"},
    {"name": "specifications", "description": "Read-only Primus GFS specification records"},
]

app = FastAPI(
    title="Primus Compliance Engine",
    description="Specification-grounded Primus GFS compliance document generation service",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=openapi_tags,
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Liveness plus whether the specification store is readable."""
    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.COMPLIANCE_ENV,
            "spec_store": settings.SPEC_ROOT.is_dir(),
        },
        status_code=200,
    )


app.include_router(api_router, prefix="/v1")
