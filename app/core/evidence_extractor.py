"""Keyword-based evidence extraction from uploaded source documents."""

import json
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from app.core.compliance_sections import get_keywords_for_section
from app.core.schemas_generation import ComplianceSection, SourceDocument

NO_EVIDENCE_SENTINEL = "No specific evidence found for this section."
GENERAL_REQUIREMENTS = "General compliance requirements for this section."

MAX_LINES_PER_DOCUMENT = 5
MAX_REQUIREMENTS_PER_SECTION = 5


def extract_relevant_evidence(
    section: ComplianceSection,
    documents: Iterable[SourceDocument],
    checklist: Any = None,
    char_budget: int = 2000,
) -> str:
    """
    Pull keyword-matching lines from each document for one section.

    At most the first 5 matching lines are taken per document. The combined
    text never exceeds ``char_budget``; when nothing matches the sentinel
    ``NO_EVIDENCE_SENTINEL`` is returned and generation proceeds from the
    specification alone.

    Args:
        section: Section the evidence is for
        documents: Source documents as plain text
        checklist: Unused by keyword resolution, accepted for call-site symmetry
        char_budget: Maximum length of the returned string

    Returns:
        "From {file}:\\n{lines}\\n---" blocks joined by blank lines
    """
    keywords = [kw.lower() for kw in get_keywords_for_section(section)]
    blocks: list[str] = []

    for doc in documents:
        matching = [
            line for line in doc.text.split("\n") if any(kw in line.lower() for kw in keywords)
        ]
        excerpt = "\n".join(matching[:MAX_LINES_PER_DOCUMENT])
        if excerpt:
            blocks.append(f"From {doc.file_name}:\n{excerpt}\n---")

    if not blocks:
        return NO_EVIDENCE_SENTINEL[:char_budget]
    return "\n\n".join(blocks)[:char_budget]


def build_evidence_cache(
    sections: Iterable[ComplianceSection],
    documents: list[SourceDocument],
    checklist: Any = None,
    char_budget: int = 2000,
) -> Mapping[int, str]:
    """Precompute evidence per section id; the mapping is read-only."""
    return MappingProxyType(
        {
            section.id: extract_relevant_evidence(section, documents, checklist, char_budget)
            for section in sections
        }
    )


def _as_text(item: Any) -> str:
    return item if isinstance(item, str) else json.dumps(item, default=str)


def filter_requirements_for_section(
    section: ComplianceSection,
    checklist: Any,
    missing_requirements: list[Any] | None = None,
) -> str:
    """
    Checklist items and known gaps that mention one of the section keywords.

    A string checklist carries no structure to filter, so the section
    keywords themselves are listed as the focus areas.
    """
    keywords = [kw.lower() for kw in get_keywords_for_section(section)]

    relevant: list[str] = []
    if isinstance(checklist, list):
        relevant = [
            _as_text(req)
            for req in checklist
            if any(kw in _as_text(req).lower() for kw in keywords)
        ]
    elif isinstance(checklist, str) and checklist.strip():
        relevant = [json.dumps({"description": kw}) for kw in keywords]

    lines = [f"- {text}" for text in relevant[:MAX_REQUIREMENTS_PER_SECTION]]

    gaps = [
        _as_text(gap)
        for gap in (missing_requirements or [])
        if any(kw in _as_text(gap).lower() for kw in keywords)
    ]
    if gaps:
        lines.append("Identified gaps to close:")
        lines.extend(f"- {gap}" for gap in gaps[:MAX_REQUIREMENTS_PER_SECTION])

    return "\n".join(lines) if lines else GENERAL_REQUIREMENTS


def format_coverage_gaps(coverage_map: Mapping[str, str]) -> str:
    """Requirement codes not fully covered by the uploaded evidence."""
    missing = sorted(code for code, status in coverage_map.items() if status == "missing")
    partial = sorted(code for code, status in coverage_map.items() if status == "partial")

    lines: list[str] = []
    if missing:
        lines.append(f"Missing: {', '.join(missing)}")
    if partial:
        lines.append(f"Partially covered: {', '.join(partial)}")
    return "\n".join(lines) if lines else "No coverage gaps reported."
