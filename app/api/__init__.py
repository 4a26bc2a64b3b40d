"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import documents, specifications

router = APIRouter()

# Document generation, structure, finalization and crosswalk
router.include_router(documents.router, tags=["documents"])

# Read-only specification store
router.include_router(specifications.router, tags=["specifications"])
