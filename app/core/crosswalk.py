"""Compliance crosswalk: maps specification requirements to document evidence.

Each requirement is FULFILLED when enough of its keywords appear in the
document (one keyword if it declares two or fewer, otherwise two), and a GAP
otherwise. No LLM involved.
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from app.core.errors import SpecificationNotFoundError
from app.core.logging import get_logger
from app.core.schemas_generation import CrosswalkEntry, CrosswalkReport
from app.core.schemas_specification import SubmoduleRequirement
from app.core.spec_loader import SpecificationLoader, get_spec_loader

logger = get_logger(__name__)

MANDATORY_GAP = "GAP: Mandatory requirement not addressed. Must be implemented within 30 days."
OPTIONAL_GAP = "GAP: Optional requirement not addressed. Consider implementation for enhanced compliance."

_SECTION_HEADER_RE = re.compile(r"^\d+\.\s*(.+)")
_EVIDENCE_MAX_CHARS = 200


@dataclass(frozen=True)
class _Requirement:
    code: str
    description: str
    mandatory: bool
    keywords: tuple[str, ...]

    @classmethod
    def from_spec(cls, req: SubmoduleRequirement) -> "_Requirement":
        return cls(
            code=req.code,
            description=req.text or req.code,
            mandatory=req.required,
            keywords=tuple(req.keywords),
        )


def _section_for_keyword(lines: list[str], keyword: str) -> str | None:
    current: str | None = None
    for line in lines:
        header = _SECTION_HEADER_RE.match(line.strip())
        if header:
            current = header.group(1).strip()
        if current and keyword in line.lower():
            return current
    return None


def _evidence_text(lines: list[str], keyword: str) -> str | None:
    """Line containing the keyword plus the following line, capped at 200 chars."""
    for i, line in enumerate(lines):
        if keyword in line.lower():
            parts = [line.strip()]
            if i + 1 < len(lines) and lines[i + 1].strip():
                parts.append(lines[i + 1].strip())
            joined = " ".join(parts)
            if len(joined) > _EVIDENCE_MAX_CHARS:
                return joined[:_EVIDENCE_MAX_CHARS] + "..."
            return joined
    return None


def match_requirement(requirement: _Requirement, document: str) -> CrosswalkEntry:
    doc_lower = document.lower()
    lines = document.split("\n")

    matched: list[str] = []
    sections: list[str] = []
    for keyword in requirement.keywords:
        kw_lower = keyword.lower()
        if kw_lower and kw_lower in doc_lower:
            matched.append(keyword)
            section = _section_for_keyword(lines, kw_lower)
            if section and section not in sections:
                sections.append(section)

    threshold = 1 if len(requirement.keywords) <= 2 else 2
    if matched and len(matched) >= threshold:
        evidence = _evidence_text(lines, matched[0].lower())
        return CrosswalkEntry(
            requirement_code=requirement.code,
            requirement_description=requirement.description,
            mandatory=requirement.mandatory,
            document_section=", ".join(sections) or "Multiple sections",
            evidence=evidence or f"Keywords found: {', '.join(matched)}",
            status="FULFILLED",
            matched_keywords=matched,
        )

    return CrosswalkEntry(
        requirement_code=requirement.code,
        requirement_description=requirement.description,
        mandatory=requirement.mandatory,
        document_section=None,
        evidence=MANDATORY_GAP if requirement.mandatory else OPTIONAL_GAP,
        status="GAP",
        matched_keywords=matched,
    )


def _module_requirements(loader: SpecificationLoader, module_id: str) -> list[SubmoduleRequirement]:
    """Requirements of every loadable submodule in the module, in declaration order."""
    module_spec = loader.load_module_spec(module_id)
    requirements: list[SubmoduleRequirement] = []
    for ref in module_spec.submodules:
        try:
            requirements.extend(loader.load_submodule_spec(module_id, ref.code).requirements)
        except SpecificationNotFoundError as e:
            logger.warning(f"Crosswalk skipping submodule {ref.code}: {e}")
    return requirements


def generate_crosswalk(
    document: str,
    module_id: str,
    submodule: str | None = None,
    document_name: str | None = None,
    loader: SpecificationLoader | None = None,
    generated_at: datetime | None = None,
) -> CrosswalkReport:
    """
    Build a requirement-by-requirement crosswalk for a generated document.

    Uses the resolved submodule's requirements, or every submodule in the
    module when none resolves.

    Raises:
        SpecificationNotFoundError: If the module does not exist
    """
    loader = loader or get_spec_loader()
    module_spec = loader.load_module_spec(module_id)
    submodule_spec = loader.find_submodule_spec_by_name(module_id, document_name, submodule)

    if submodule_spec:
        logger.info(f"Crosswalk using submodule spec: {submodule_spec.code} - {submodule_spec.title}")
        module_name = submodule_spec.title
        spec_requirements = submodule_spec.requirements
    else:
        logger.info(f"Crosswalk using all requirements of module {module_id}")
        module_name = module_spec.module_name
        spec_requirements = _module_requirements(loader, module_id)

    entries = [match_requirement(_Requirement.from_spec(req), document) for req in spec_requirements]
    fulfilled = sum(1 for e in entries if e.status == "FULFILLED")

    return CrosswalkReport(
        module_id=module_id,
        module_name=module_name,
        submodule_code=submodule_spec.code if submodule_spec else None,
        generated_date=(generated_at or datetime.now(UTC)).isoformat(),
        total_requirements=len(entries),
        fulfilled_count=fulfilled,
        gap_count=len(entries) - fulfilled,
        entries=entries,
    )


def format_crosswalk_table(report: CrosswalkReport) -> str:
    """Crosswalk as a pipe-separated table for insertion into section 14."""
    rows = [f"Primus Code | Requirement | Document Section | Evidence\n{'=' * 120}"]
    for entry in report.entries:
        section = entry.document_section or "GAP"
        evidence = entry.evidence.replace("\n", " ")[:80]
        rows.append(
            f"{entry.requirement_code} | {entry.requirement_description[:50]}... | {section} | {evidence}"
        )
    return "\n".join(rows)
