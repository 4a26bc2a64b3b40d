"""Deterministic document structure builder.

Builds the module's fixed section outline with required-content bullets
derived from the module and submodule specifications. No LLM call and no
randomness: the same specification and answers always yield the same text.

Section builders are registered per section number:

    @register_section_builder(12)
    def _traceability(ctx: StructureContext) -> list[str]:
        ...

Sections without a registered builder get no injected bullets.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from app.core.logging import get_logger
from app.core.schemas_specification import MicroRules, ModuleSpec, SubmoduleSpec
from app.core.spec_loader import SpecificationLoader, get_spec_loader

logger = get_logger(__name__)

DIVIDER = "=" * 80


@dataclass(frozen=True)
class StructureContext:
    """Inputs available to every section builder."""

    module_spec: ModuleSpec
    submodule_spec: SubmoduleSpec | None
    micro_rules: dict[str, MicroRules] = field(default_factory=dict)
    answers: dict[str, Any] | None = None


@dataclass
class StructureSection:
    """One outline section with its specification-derived bullets."""

    number: int
    title: str
    required: bool
    min_paragraphs: int
    content_guidance: str
    required_content: list[str] = field(default_factory=list)


SectionBuilder = Callable[[StructureContext], list[str]]

_SECTION_BUILDERS: dict[int, SectionBuilder] = {}


def register_section_builder(number: int) -> Callable[[SectionBuilder], SectionBuilder]:
    """Register a pure bullet builder for a section number."""

    def decorator(fn: SectionBuilder) -> SectionBuilder:
        if number in _SECTION_BUILDERS:
            raise ValueError(f"Section builder already registered for section {number}")
        _SECTION_BUILDERS[number] = fn
        return fn

    return decorator


def registered_sections() -> list[int]:
    return sorted(_SECTION_BUILDERS)


# ============================================================================
# Section builders
# ============================================================================


@register_section_builder(1)
def _title_and_control(ctx: StructureContext) -> list[str]:
    content: list[str] = []
    spec = ctx.submodule_spec
    if spec:
        content.append(f"Document Title: {spec.title}")
        content.append(f"Document Code: {spec.code}")

    answers = ctx.answers or {}
    labels = (
        ("document_number", "Document Number"),
        ("document_version", "Version"),
        ("effective_date", "Effective Date"),
        ("approved_by", "Approved By"),
    )
    for key, label in labels:
        if answers.get(key):
            content.append(f"{label}: {answers[key]}")
    return content


@register_section_builder(2)
def _purpose(ctx: StructureContext) -> list[str]:
    if not ctx.submodule_spec:
        return []
    return [
        f"Purpose: {ctx.submodule_spec.description}",
        "Compliance Standard: Primus GFS v4.0",
    ]


@register_section_builder(3)
def _scope(ctx: StructureContext) -> list[str]:
    if not ctx.submodule_spec or not ctx.submodule_spec.applies_to:
        return []
    return [f"Applies To: {', '.join(ctx.submodule_spec.applies_to)}"]


@register_section_builder(7)
def _hazard(ctx: StructureContext) -> list[str]:
    content = [
        f"Hazard types relevant to {ctx.module_spec.module_name}:",
        "- Biological hazards (if applicable)",
        "- Chemical hazards (if applicable)",
        "- Physical hazards (if applicable)",
    ]
    spec = ctx.submodule_spec
    if spec:
        content.append(f"Specific risks for {spec.title} must be analyzed")
        content.extend(f"- {hazard}" for hazard in spec.hazard_inject)
        for req in spec.required_requirements:
            if req.risk_level == "high":
                content.append(f"[{req.code}] High-risk requirement: {req.text}")
    return content


@register_section_builder(8)
def _procedures(ctx: StructureContext) -> list[str]:
    content: list[str] = []
    spec = ctx.submodule_spec
    if spec:
        content.append(f"Core Procedures for {spec.title}:")
        for req in spec.required_requirements:
            content.append(f"[{req.code}] {req.text}")
            content.extend(f"  -> {statement}" for statement in req.mandatory_statements)

    if ctx.micro_rules:
        content.append("")
        content.append("[Additional Mandatory Requirements:]")
        for category, micro in ctx.micro_rules.items():
            for rule_id, rule_text in micro.rules.items():
                content.append(f"[{category}/{rule_id}] {rule_text}")
    return content


@register_section_builder(9)
def _monitoring(ctx: StructureContext) -> list[str]:
    if not ctx.submodule_spec:
        return []
    return [
        f"[{req.code}] Monitoring: {req.monitoring_expectations}"
        for req in ctx.submodule_spec.required_requirements
        if req.monitoring_expectations
    ]


@register_section_builder(10)
def _verification(ctx: StructureContext) -> list[str]:
    if not ctx.submodule_spec:
        return []
    return [
        f"[{req.code}] Verification: {req.verification_expectations}"
        for req in ctx.submodule_spec.required_requirements
        if req.verification_expectations
    ]


@register_section_builder(11)
def _capa(ctx: StructureContext) -> list[str]:
    if not ctx.submodule_spec or not ctx.submodule_spec.capa_inject:
        return []
    return ["CAPA Triggers and Protocols:"] + [f"- {item}" for item in ctx.submodule_spec.capa_inject]


@register_section_builder(12)
def _traceability(ctx: StructureContext) -> list[str]:
    if not ctx.submodule_spec or not ctx.submodule_spec.traceability_inject:
        return []
    return ["Traceability Requirements:"] + [
        f"- {item}" for item in ctx.submodule_spec.traceability_inject
    ]


@register_section_builder(13)
def _records(ctx: StructureContext) -> list[str]:
    if not ctx.submodule_spec or not ctx.submodule_spec.records_inject:
        return []
    return ["Records to Maintain:"] + [f"- {item}" for item in ctx.submodule_spec.records_inject]


# ============================================================================
# Public API
# ============================================================================


def build_structured_sections(ctx: StructureContext) -> list[StructureSection]:
    """Overlay registered bullets on the module's document structure template."""
    sections: list[StructureSection] = []
    for template in ctx.module_spec.document_structure_template.sections:
        builder = _SECTION_BUILDERS.get(template.number)
        sections.append(
            StructureSection(
                number=template.number,
                title=template.title,
                required=template.required,
                min_paragraphs=template.min_paragraphs,
                content_guidance=template.content_guidance,
                required_content=builder(ctx) if builder else [],
            )
        )
    return sections


def resolve_structure_context(
    module_id: str,
    submodule_identifier: str | None = None,
    answers: dict[str, Any] | None = None,
    document_name: str | None = None,
    loader: SpecificationLoader | None = None,
) -> StructureContext:
    """
    Load the specifications a structure is built from.

    Raises:
        SpecificationNotFoundError: If the module does not exist
    """
    loader = loader or get_spec_loader()
    module_spec = loader.load_module_spec(module_id)
    submodule_spec = loader.find_submodule_spec_by_name(
        module_id, document_name, submodule_identifier
    )
    micro_rules = loader.get_relevant_micro_rules(submodule_spec.micro_inject if submodule_spec else [])
    return StructureContext(
        module_spec=module_spec,
        submodule_spec=submodule_spec,
        micro_rules=micro_rules,
        answers=answers,
    )


def render_structure(ctx: StructureContext, sections: list[StructureSection]) -> str:
    blocks: list[str] = [
        DIVIDER,
        "PRIMUS GFS v4.0 DOCUMENT STRUCTURE",
        f"Module: {ctx.module_spec.module_name}",
    ]
    if ctx.submodule_spec:
        blocks.append(f"Submodule: {ctx.submodule_spec.code} - {ctx.submodule_spec.title}")
    blocks.extend([DIVIDER, ""])

    for section in sections:
        blocks.append(f"{section.number}. {section.title.upper()}")
        blocks.append(DIVIDER)
        blocks.append("")
        blocks.append(f"[Content Guidance: {section.content_guidance}]")
        blocks.append(f"[Minimum Paragraphs: {section.min_paragraphs}]")
        blocks.append("")

        if section.required_content:
            blocks.append("[REQUIRED CONTENT TO INCLUDE:]")
            blocks.extend(f"- {line}" for line in section.required_content)
            blocks.append("")

        blocks.append("[Generate comprehensive content for this section now]")
        blocks.append("")
        blocks.append("")

    return "\n".join(blocks)


def build_deterministic_structure(
    module_id: str,
    submodule_identifier: str | None = None,
    answers: dict[str, Any] | None = None,
    document_name: str | None = None,
    loader: SpecificationLoader | None = None,
) -> str:
    """
    Build the specification-grounded document outline.

    Args:
        module_id: Module number (e.g. "5")
        submodule_identifier: Submodule code or name
        answers: Questionnaire answers (document_number, document_version,
            effective_date, approved_by) surfaced in section 1
        document_name: Free-text document name used for submodule resolution
        loader: Specification loader (defaults to the process singleton)

    Returns:
        Outline text, byte-identical for identical inputs

    Raises:
        SpecificationNotFoundError: If the module does not exist
    """
    logger.info(
        f"Building deterministic structure for module {module_id}, "
        f"submodule: {submodule_identifier or 'N/A'}"
    )
    ctx = resolve_structure_context(module_id, submodule_identifier, answers, document_name, loader)
    return render_structure(ctx, build_structured_sections(ctx))


def format_requirements_list(module_spec: ModuleSpec, submodule_spec: SubmoduleSpec | None) -> str:
    """Flattened, human-readable requirement dump for generation prompts."""
    blocks: list[str] = [f"MODULE: {module_spec.module_name}", ""]

    if submodule_spec:
        blocks.append(f"SUBMODULE: {submodule_spec.code} - {submodule_spec.title}")
        blocks.append(f"Description: {submodule_spec.description}")
        blocks.append("")
        blocks.append("MANDATORY REQUIREMENTS:")
        blocks.append(DIVIDER)

        for req in submodule_spec.required_requirements:
            blocks.append(f"\n[{req.code}] {req.text}")
            blocks.append("Mandatory Statements:")
            blocks.extend(f"  - {statement}" for statement in req.mandatory_statements)
            blocks.append(f"Monitoring: {req.monitoring_expectations}")
            blocks.append(f"Verification: {req.verification_expectations}")

    return "\n".join(blocks)


def build_requirements_list(
    module_id: str,
    submodule_code: str | None = None,
    document_name: str | None = None,
    loader: SpecificationLoader | None = None,
) -> str:
    """
    Flattened requirement list for a module/submodule.

    Raises:
        SpecificationNotFoundError: If the module does not exist
    """
    loader = loader or get_spec_loader()
    module_spec = loader.load_module_spec(module_id)
    submodule_spec = loader.find_submodule_spec_by_name(module_id, document_name, submodule_code)
    return format_requirements_list(module_spec, submodule_spec)
