"""Tests for the deterministic structure builder.

Covers:
- build_deterministic_structure() determinism and rendering
- Registered section builders (hazard, procedures, CAPA, answers)
- Section builder registry
- format_requirements_list() / build_requirements_list()
"""

import pytest

from app.core.errors import SpecificationNotFoundError
from app.core.structure_builder import (
    build_deterministic_structure,
    build_requirements_list,
    build_structured_sections,
    register_section_builder,
    registered_sections,
    resolve_structure_context,
)


def _sections_by_number(spec_loader, module_id, submodule=None, **kwargs):
    ctx = resolve_structure_context(module_id, submodule, loader=spec_loader, **kwargs)
    return {s.number: s for s in build_structured_sections(ctx)}


class TestDeterministicStructure:
    """Rendered outline text."""

    def test_same_inputs_same_output(self, spec_loader):
        first = build_deterministic_structure("5", "5.12", loader=spec_loader)
        spec_loader.cache.clear()
        second = build_deterministic_structure("5", "5.12", loader=spec_loader)
        assert first == second

    def test_header_and_section_headings(self, spec_loader):
        text = build_deterministic_structure("5", "5.12", loader=spec_loader)
        assert text.startswith("=" * 80 + "\nPRIMUS GFS v4.0 DOCUMENT STRUCTURE\nModule: Facility\n")
        assert "Submodule: 5.12 - Pest Control Program" in text
        assert "8. PROCEDURES (DETAILED STEP-BY-STEP)" in text
        assert "[Minimum Paragraphs: 4]" in text
        assert text.count("[Generate comprehensive content for this section now]") == 15

    def test_procedures_bullets(self, spec_loader):
        text = build_deterministic_structure("5", "5.12", loader=spec_loader)
        assert "- Core Procedures for Pest Control Program:" in text
        assert "- [5.12.02] A current, dated pest device map shows every numbered bait station and trap." in text
        assert "-   -> Devices are numbered and the numbers match the map" in text
        assert "- [Additional Mandatory Requirements:]" in text
        assert "- [pest/P-03] The pest control operator service report" in text

    def test_unresolved_submodule_omits_submodule_line(self, spec_loader):
        text = build_deterministic_structure("5", document_name="Visitor badge policy", loader=spec_loader)
        assert "Submodule:" not in text
        assert "Hazard types relevant to Facility:" in text

    def test_unknown_module_raises(self, spec_loader):
        with pytest.raises(SpecificationNotFoundError):
            build_deterministic_structure("99", loader=spec_loader)


class TestSectionBuilders:
    """Specification-derived bullets per section number."""

    def test_title_section_uses_answers(self, spec_loader):
        sections = _sections_by_number(
            spec_loader, "5", "5.12", answers={"document_number": "PC-001", "approved_by": "J. Ramos"}
        )
        assert sections[1].required_content == [
            "Document Title: Pest Control Program",
            "Document Code: 5.12",
            "Document Number: PC-001",
            "Approved By: J. Ramos",
        ]

    def test_hazard_section_lists_high_risk_requirements(self, spec_loader):
        content = _sections_by_number(spec_loader, "5", "5.12")[7].required_content
        assert "- Rodent and bird contamination of product contact surfaces" in content
        high_risk = [line for line in content if "High-risk requirement" in line]
        assert [line.split("]")[0] for line in high_risk] == ["[5.12.01", "[5.12.03", "[5.12.04"]

    def test_optional_requirements_excluded(self, spec_loader):
        sections = _sections_by_number(spec_loader, "1", "1.01")
        procedures = "\n".join(sections[8].required_content)
        monitoring = "\n".join(sections[9].required_content)
        assert "[1.01.03]" in procedures
        assert "[1.01.04]" not in procedures
        assert "[1.01.04]" not in monitoring

    def test_verification_lines_for_aggregated_submodule(self, spec_loader):
        content = _sections_by_number(spec_loader, "4", "4.05")[10].required_content
        assert [line.split("]")[0] for line in content] == ["[4.05.01.01", "[4.05.01.02", "[4.05.02.01"]

    def test_capa_and_records(self, spec_loader):
        sections = _sections_by_number(spec_loader, "5", "5.12")
        assert sections[11].required_content == [
            "CAPA Triggers and Protocols:",
            "- Evidence of pest activity inside a production or storage area",
            "- Missing or damaged bait station",
        ]
        assert sections[13].required_content[0] == "Records to Maintain:"
        assert "- Pesticide usage log" in sections[13].required_content

    def test_sections_without_builder_are_empty(self, spec_loader):
        sections = _sections_by_number(spec_loader, "5", "5.12")
        assert sections[4].required_content == []
        assert sections[14].required_content == []

    def test_no_submodule_keeps_generic_hazards_only(self, spec_loader):
        sections = _sections_by_number(spec_loader, "5", document_name="Visitor badge policy")
        assert len(sections[7].required_content) == 4
        assert sections[8].required_content == []


class TestRegistry:
    """Section builder registration."""

    def test_registered_sections(self):
        assert registered_sections() == [1, 2, 3, 7, 8, 9, 10, 11, 12, 13]

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError, match="already registered"):
            register_section_builder(8)(lambda ctx: [])


class TestRequirementsList:
    """Flattened requirement dump used in generation prompts."""

    def test_requirements_list_for_submodule(self, spec_loader):
        text = build_requirements_list("5", "5.12", loader=spec_loader)
        assert text.startswith("MODULE: Facility\n\nSUBMODULE: 5.12 - Pest Control Program")
        assert "MANDATORY REQUIREMENTS:" in text
        assert "\n[5.12.05] Pesticides used in the program" in text
        assert "  - Safety data sheets and labels are on file for every product applied" in text
        assert "Monitoring: Interior devices checked weekly" in text

    def test_requirements_list_without_submodule(self, spec_loader):
        text = build_requirements_list("5", document_name="Visitor badge policy", loader=spec_loader)
        assert text == "MODULE: Facility\n"
