"""Tests for the document and specification API endpoints.

Covers all endpoints via FastAPI TestClient; document generation is mocked,
specification endpoints read the bundled store.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.chains.improve_document import ImprovedDocument
from app.core.errors import SectionGenerationFailure, SpecificationNotFoundError
from app.core.schemas_generation import DocumentMetadata, GeneratedSection
from app.main import app

client = TestClient(app)

IMPROVE_BODY = {
    "existing_documents": [{"file_name": "pest_log.txt", "text": "Bait station 12 inspected weekly"}],
    "module_id": "5",
    "submodule": "5.12",
    "coverage_map": {"5.12.03": "missing"},
}

SIGNED_DOCUMENT = (
    "1. Title & Document Control\n\nPest Control Program\n\n"
    "Approved By: Jane Doe\nDate: 2026-01-15\n\nCOMPLIANCE SUMMARY\nAll requirements met."
)


def _improved() -> ImprovedDocument:
    return ImprovedDocument(
        content="PEST CONTROL PROGRAM ...",
        metadata=DocumentMetadata(doc_number="DOC-PC-01", effective_date="2026-01-15"),
        sections=[
            GeneratedSection(id=2, name="Purpose / Objective", content="2. Purpose / Objective\n\nPrevent pests."),
            GeneratedSection(
                id=4,
                name="Definitions & Abbreviations",
                content="4. Definitions & Abbreviations\n\n[Content not available]",
            ),
        ],
        validation_issues=["Section 4: Missing section content '[Content not available]'"],
        submodule_code="5.12",
    )


def test_health_check():
    """/health reports status, environment and the bundled specification store."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "environment": "test", "spec_store": True}


def test_lifespan_runs_on_startup():
    with TestClient(app) as started:
        assert started.get("/health").status_code == 200


class TestImproveEndpoint:
    """POST /v1/documents/improve"""

    def test_success(self):
        with patch(
            "app.api.documents.improve_document_with_report",
            new_callable=AsyncMock,
            return_value=_improved(),
        ) as mock_improve:
            response = client.post("/v1/documents/improve", json=IMPROVE_BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "PEST CONTROL PROGRAM ..."
        assert data["metadata"]["doc_number"] == "DOC-PC-01"
        assert data["sections"][1] == {
            "id": 4,
            "name": "Definitions & Abbreviations",
            "chars": len("4. Definitions & Abbreviations\n\n[Content not available]"),
            "placeholder": True,
        }
        assert data["validation_issues"] == ["Section 4: Missing section content '[Content not available]'"]

        kwargs = mock_improve.await_args.kwargs
        assert kwargs["module_id"] == "5"
        assert kwargs["submodule"] == "5.12"

    def test_unknown_module_is_404(self):
        with patch(
            "app.api.documents.improve_document_with_report",
            new_callable=AsyncMock,
            side_effect=SpecificationNotFoundError("Module spec for module 99 not found or invalid"),
        ):
            response = client.post("/v1/documents/improve", json={**IMPROVE_BODY, "module_id": "99"})
        assert response.status_code == 404
        assert "module 99" in response.json()["detail"]

    def test_section_failure_is_502(self):
        with patch(
            "app.api.documents.improve_document_with_report",
            new_callable=AsyncMock,
            side_effect=SectionGenerationFailure("Section 8", 2, TimeoutError()),
        ):
            response = client.post("/v1/documents/improve", json=IMPROVE_BODY)
        assert response.status_code == 502
        assert response.json()["detail"].startswith("Section 8 failed after 2 attempt(s)")

    def test_invalid_coverage_status_is_422(self):
        body = {**IMPROVE_BODY, "coverage_map": {"5.12.03": "unknown"}}
        assert client.post("/v1/documents/improve", json=body).status_code == 422


class TestStructureEndpoint:
    """POST /v1/documents/structure"""

    def test_structure(self):
        response = client.post("/v1/documents/structure", json={"module_id": "5", "submodule": "5.12"})
        assert response.status_code == 200
        data = response.json()
        assert data["submodule_code"] == "5.12"
        assert "PRIMUS GFS v4.0 DOCUMENT STRUCTURE" in data["structure"]
        assert "- [5.12.01]" in data["structure"]

    def test_structure_by_document_name(self):
        response = client.post(
            "/v1/documents/structure", json={"module_id": "4", "document_name": "Harvesting procedure"}
        )
        assert response.json()["submodule_code"] == "4.05"

    def test_unknown_module_is_404(self):
        response = client.post("/v1/documents/structure", json={"module_id": "99"})
        assert response.status_code == 404


class TestFinalizeEndpoint:
    """POST /v1/documents/finalize"""

    def test_post_signature_content_removed(self):
        response = client.post("/v1/documents/finalize", json={"text": SIGNED_DOCUMENT})
        assert response.status_code == 200
        data = response.json()
        assert data["content"].endswith("Date: 2026-01-15")
        assert not data["valid"]
        assert any("Document too short" in issue for issue in data["issues"])


class TestCrosswalkEndpoint:
    """POST /v1/documents/crosswalk"""

    def test_crosswalk(self):
        body = {
            "document": "The pest control program is run by a licensed operator with trained staff.",
            "module_id": "5",
            "submodule": "5.12",
        }
        response = client.post("/v1/documents/crosswalk", json=body)
        assert response.status_code == 200
        data = response.json()
        assert data["total_requirements"] == 5
        assert data["entries"][0]["status"] == "FULFILLED"

    def test_unknown_module_is_404(self):
        response = client.post("/v1/documents/crosswalk", json={"document": "x", "module_id": "99"})
        assert response.status_code == 404


class TestSpecificationEndpoints:
    """GET /v1/specifications/..."""

    def test_get_module(self):
        response = client.get("/v1/specifications/modules/5")
        assert response.status_code == 200
        assert response.json()["module_name"] == "Facility"

    def test_get_unknown_module(self):
        assert client.get("/v1/specifications/modules/99").status_code == 404

    def test_get_aggregated_submodule(self):
        response = client.get("/v1/specifications/modules/4/submodules/4.05")
        assert response.status_code == 200
        data = response.json()
        assert data["has_sub_submodules"] is True
        assert len(data["requirements"]) == 4

    def test_get_missing_submodule(self):
        assert client.get("/v1/specifications/modules/5/submodules/5.01").status_code == 404

    def test_requirements_list(self):
        response = client.get("/v1/specifications/modules/5/submodules/5.12/requirements")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "[5.12.01]" in response.text

    def test_requirements_list_unknown_code(self):
        response = client.get("/v1/specifications/modules/5/submodules/9.99/requirements")
        assert response.status_code == 404
