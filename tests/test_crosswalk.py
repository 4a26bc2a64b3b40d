"""Tests for the requirement-to-evidence crosswalk."""

from datetime import UTC, datetime

import pytest

from app.core.crosswalk import (
    MANDATORY_GAP,
    OPTIONAL_GAP,
    _Requirement,
    format_crosswalk_table,
    generate_crosswalk,
    match_requirement,
)
from app.core.errors import SpecificationNotFoundError

DOCUMENT = """8. Procedures (Detailed Step-by-Step)
The pest control program is run by a licensed operator with trained staff.
Every bait station is numbered on the device map.

9. Monitoring Plan
Pest activity is trended monthly and triggers corrective action.
"""


def _requirement(*keywords, mandatory=True):
    return _Requirement(code="X.01", description="Test requirement", mandatory=mandatory, keywords=keywords)


class TestMatchRequirement:
    """Keyword threshold and evidence extraction."""

    def test_two_keywords_needed_when_more_than_two_declared(self):
        entry = match_requirement(_requirement("device map", "glue board", "toxic bait"), DOCUMENT)
        assert entry.status == "GAP"
        assert entry.matched_keywords == ["device map"]

    def test_one_keyword_enough_when_two_or_fewer_declared(self):
        entry = match_requirement(_requirement("device map", "glue board"), DOCUMENT)
        assert entry.status == "FULFILLED"
        assert entry.document_section == "Procedures (Detailed Step-by-Step)"

    def test_evidence_is_line_plus_next(self):
        entry = match_requirement(_requirement("licensed"), DOCUMENT)
        assert entry.evidence == (
            "The pest control program is run by a licensed operator with trained staff. "
            "Every bait station is numbered on the device map."
        )

    def test_evidence_capped(self):
        entry = match_requirement(_requirement("sanitizer"), "Sanitizer " + "x" * 300)
        assert len(entry.evidence) == 203
        assert entry.evidence.endswith("...")

    def test_no_section_header(self):
        entry = match_requirement(_requirement("damaged"), "Damaged crates are tagged.")
        assert entry.document_section == "Multiple sections"

    def test_gap_text_depends_on_mandatory(self):
        assert match_requirement(_requirement("glue board"), DOCUMENT).evidence == MANDATORY_GAP
        assert match_requirement(_requirement("glue board", mandatory=False), DOCUMENT).evidence == OPTIONAL_GAP


class TestGenerateCrosswalk:
    """Crosswalk over specification requirements."""

    def test_submodule_crosswalk(self, spec_loader):
        report = generate_crosswalk(DOCUMENT, "5", submodule="5.12", loader=spec_loader)
        statuses = {e.requirement_code: e.status for e in report.entries}
        assert statuses == {
            "5.12.01": "FULFILLED",
            "5.12.02": "FULFILLED",
            "5.12.03": "GAP",
            "5.12.04": "FULFILLED",
            "5.12.05": "GAP",
        }
        assert (report.total_requirements, report.fulfilled_count, report.gap_count) == (5, 3, 2)
        assert report.module_name == "Pest Control Program"
        assert report.submodule_code == "5.12"

    def test_section_attribution(self, spec_loader):
        report = generate_crosswalk(DOCUMENT, "5", submodule="5.12", loader=spec_loader)
        trend = next(e for e in report.entries if e.requirement_code == "5.12.04")
        assert trend.document_section == "Monitoring Plan"

    def test_unresolved_submodule_uses_whole_module(self, spec_loader):
        report = generate_crosswalk(DOCUMENT, "5", document_name="Visitor badge policy", loader=spec_loader)
        assert report.submodule_code is None
        assert report.module_name == "Facility"
        assert report.total_requirements == 5

    def test_generated_date(self, spec_loader):
        when = datetime(2026, 1, 15, tzinfo=UTC)
        report = generate_crosswalk(DOCUMENT, "5", "5.12", loader=spec_loader, generated_at=when)
        assert report.generated_date == "2026-01-15T00:00:00+00:00"

    def test_unknown_module_raises(self, spec_loader):
        with pytest.raises(SpecificationNotFoundError):
            generate_crosswalk(DOCUMENT, "99", loader=spec_loader)

    def test_table(self, spec_loader):
        table = format_crosswalk_table(generate_crosswalk(DOCUMENT, "5", "5.12", loader=spec_loader))
        lines = table.split("\n")
        assert lines[0] == "Primus Code | Requirement | Document Section | Evidence"
        assert len(lines) == 2 + 5
        assert next(line for line in lines if line.startswith("5.12.03")).split(" | ")[2] == "GAP"
