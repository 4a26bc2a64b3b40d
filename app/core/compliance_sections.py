"""Canonical 15-section catalog for generated compliance documents.

This catalog is the single source of truth for section ids, names,
priorities, batchability and evidence keywords. Module specifications carry a
``document_structure_template`` whose section numbers line up with these ids;
the template only contributes outline guidance (titles, minimum paragraphs,
content guidance) to the deterministic structure.
"""

from app.core.config import Settings
from app.core.schemas_generation import ComplianceSection

COMPLIANCE_SECTIONS: tuple[ComplianceSection, ...] = (
    ComplianceSection(
        id=1,
        name="Title & Document Control",
        priority="low",
        description="Document title, version, effective date, document number, and change history",
        is_batchable=True,
    ),
    ComplianceSection(
        id=2,
        name="Purpose / Objective",
        priority="high",
        description="Clear statement of the document's purpose and business objectives",
    ),
    ComplianceSection(
        id=3,
        name="Scope",
        priority="high",
        description="Define what is covered and what is excluded from this procedure",
    ),
    ComplianceSection(
        id=4,
        name="Definitions & Abbreviations",
        priority="low",
        description="Key terms, definitions, and acronyms used in the document",
        is_batchable=True,
    ),
    ComplianceSection(
        id=5,
        name="Roles & Responsibilities",
        priority="high",
        description="Define who is responsible for each key activity and decision",
    ),
    ComplianceSection(
        id=6,
        name="Prerequisites & Reference Documents",
        priority="medium",
        description="Prerequisites, related procedures, regulatory references",
        is_batchable=True,
    ),
    ComplianceSection(
        id=7,
        name="Hazard / Risk Analysis",
        priority="high",
        description="Identify and analyze potential hazards and associated risks",
    ),
    ComplianceSection(
        id=8,
        name="Procedures (Detailed Step-by-Step)",
        priority="high",
        description="Detailed, implementable procedures with clear steps and instructions",
    ),
    ComplianceSection(
        id=9,
        name="Monitoring Plan",
        priority="high",
        description="How procedures will be monitored, including frequency, methods, and responsibility",
    ),
    ComplianceSection(
        id=10,
        name="Verification & Validation Activities",
        priority="high",
        description="Activities to verify procedures are working correctly",
    ),
    ComplianceSection(
        id=11,
        name="Corrective & Preventive Action (CAPA) Protocol",
        priority="high",
        description="How to address non-conformances and prevent recurrence",
    ),
    ComplianceSection(
        id=12,
        name="Traceability & Recall Elements",
        priority="high",
        description="Systems to trace products and execute recalls if needed",
    ),
    ComplianceSection(
        id=13,
        name="Record Retention & Document Control",
        priority="medium",
        description="What records are maintained, how long, and access controls",
        is_batchable=True,
    ),
    ComplianceSection(
        id=14,
        name="Compliance Crosswalk (Primus Mapping)",
        priority="high",
        description="Mapping of procedures to specific Primus GFS requirements",
    ),
    ComplianceSection(
        id=15,
        name="Revision History & Approval Signatures",
        priority="low",
        description="Document version history and approval signatures",
        is_batchable=True,
    ),
)

SECTIONS_BY_ID: dict[int, ComplianceSection] = {s.id: s for s in COMPLIANCE_SECTIONS}

# Evidence keywords per section name
SECTION_KEYWORDS: dict[str, list[str]] = {
    "Title & Document Control": ["document", "version", "control", "approval", "date"],
    "Purpose / Objective": ["purpose", "objective", "goal", "mission", "intent"],
    "Scope": ["scope", "applies", "includes", "excludes", "coverage"],
    "Definitions & Abbreviations": ["define", "definition", "abbreviation", "acronym", "term"],
    "Roles & Responsibilities": ["role", "responsibility", "owner", "manager", "responsible"],
    "Prerequisites & Reference Documents": [
        "prerequisite",
        "reference",
        "requirement",
        "standard",
        "procedure",
    ],
    "Hazard / Risk Analysis": ["hazard", "risk", "analysis", "assess", "danger", "mitigation"],
    "Procedures (Detailed Step-by-Step)": [
        "procedure",
        "step",
        "process",
        "instruction",
        "how to",
        "method",
    ],
    "Monitoring Plan": ["monitor", "frequency", "check", "inspect", "verification", "testing"],
    "Verification & Validation Activities": ["verify", "validation", "confirm", "test", "audit"],
    "Corrective & Preventive Action (CAPA) Protocol": [
        "corrective",
        "preventive",
        "capa",
        "action",
        "issue",
        "nonconformance",
    ],
    "Traceability & Recall Elements": ["trace", "traceability", "recall", "batch", "lot", "track"],
    "Record Retention & Document Control": [
        "record",
        "retention",
        "document",
        "control",
        "archive",
        "storage",
    ],
    "Compliance Crosswalk (Primus Mapping)": [
        "primus",
        "compliance",
        "mapping",
        "requirement",
        "standard",
        "gfs",
    ],
    "Revision History & Approval Signatures": [
        "revision",
        "history",
        "approval",
        "signature",
        "author",
        "date",
    ],
}

# Sections whose prompts also receive the flattened specification requirements
REQUIREMENTS_HEAVY_SECTIONS = frozenset({8, 9, 10, 14})


def get_keywords_for_section(section: ComplianceSection) -> list[str]:
    """Keywords used to pull evidence lines for a section.

    Falls back to the first word of the section name, lowercased.
    """
    keywords = SECTION_KEYWORDS.get(section.name)
    if keywords:
        return keywords
    return [section.name.lower().split(" ")[0]]


def token_budget_for(section: ComplianceSection, settings: Settings) -> int:
    """Max output tokens for a section, proportional to its importance."""
    budgets = {
        "high": settings.SECTION_TOKENS_HIGH,
        "medium": settings.SECTION_TOKENS_MEDIUM,
        "low": settings.SECTION_TOKENS_LOW,
    }
    return budgets.get(section.priority, settings.SECTION_TOKENS_MEDIUM)


def page_guidance_for(section: ComplianceSection) -> str:
    if section.priority == "high":
        return "Keep this section to 1-2 pages."
    if section.priority == "medium":
        return "Keep this section to 1 page."
    return "Keep this section concise - under 0.5 pages."
