"""Section-by-section compliance content generation.

High-priority sections get one LLM call each, all dispatched concurrently.
Batchable (medium/low priority) sections share a single call whose response
is split on per-section delimiters; if that call fails the sections are
generated individually and any that still fail become placeholders.

Failure semantics differ on purpose: an individually generated section that
exhausts its retries raises ``SectionGenerationFailure`` to the caller, while
batched sections degrade to ``"{id}. {name}\\n\\n[Content not available]"``.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.core.compliance_sections import (
    REQUIREMENTS_HEAVY_SECTIONS,
    page_guidance_for,
    token_budget_for,
)
from app.core.config import Settings, get_settings
from app.core.errors import BatchParseFailure, MetaCommentaryDetected, SectionGenerationFailure
from app.core.evidence_extractor import (
    extract_relevant_evidence,
    filter_requirements_for_section,
    format_coverage_gaps,
)
from app.core.llm import InvokeFn, invoke_claude
from app.core.logging import get_logger, log_with_context
from app.core.output_validator import check_forbidden_patterns_only, enforce_signature_boundary
from app.core.retry import RetryPolicy, with_retry
from app.core.schemas_generation import ComplianceSection, GeneratedSection, SourceDocument

logger = get_logger(__name__)

PLACEHOLDER_TEXT = "[Content not available]"

# Fence lines anywhere in the body, not just a wrapping pair
_FENCE_OPEN_RE = re.compile(r"^```[a-z]*\n?", re.MULTILINE)
_FENCE_CLOSE_RE = re.compile(r"\n?```$", re.MULTILINE)


@dataclass(frozen=True)
class GenerationContext:
    """Inputs shared by every section call of one document.

    ``evidence_cache`` is built once before generation starts and only read
    afterwards. ``required_content`` holds specification-derived bullets per
    section number.
    """

    documents: Sequence[SourceDocument]
    checklist: Any = None
    missing_requirements: Sequence[Any] = ()
    coverage_map: Mapping[str, str] = field(default_factory=dict)
    evidence_cache: Mapping[int, str] | None = None
    required_content: Mapping[int, Sequence[str]] = field(default_factory=dict)
    requirements_outline: str | None = None

    def evidence_for(self, section: ComplianceSection, char_budget: int) -> str:
        if self.evidence_cache is not None and section.id in self.evidence_cache:
            return self.evidence_cache[section.id][:char_budget]
        return extract_relevant_evidence(section, self.documents, self.checklist, char_budget)


# =============================================================================
# Prompts
# =============================================================================


def _specification_block(section: ComplianceSection, context: GenerationContext) -> str:
    blocks: list[str] = []

    bullets = [b for b in context.required_content.get(section.id, ()) if b]
    if bullets:
        blocks.append("SPECIFICATION CONTENT THAT MUST APPEAR IN THIS SECTION:")
        blocks.extend(f"- {b}" for b in bullets)

    if context.requirements_outline and section.id in REQUIREMENTS_HEAVY_SECTIONS:
        if blocks:
            blocks.append("")
        blocks.append("FULL SPECIFICATION REQUIREMENTS:")
        blocks.append(context.requirements_outline)

    return "\n".join(blocks)


def build_section_prompt(section: ComplianceSection, context: GenerationContext, settings: Settings) -> str:
    """Prompt for one individually generated section."""
    evidence = context.evidence_for(section, settings.EVIDENCE_CHAR_BUDGET)
    requirements = filter_requirements_for_section(
        section, context.checklist, list(context.missing_requirements)
    )
    spec_block = _specification_block(section, context)
    spec_part = f"\n{spec_block}\n" if spec_block else ""

    return f"""You are a professional compliance document writer specializing in Primus GFS certification.

TASK: Write Section {section.id} - {section.name}

SECTION DESCRIPTION:
{section.description}

RELEVANT EVIDENCE FROM UPLOADED DOCUMENTS:
{evidence}

APPLICABLE REQUIREMENTS:
{requirements}

COVERAGE GAPS FROM ANALYSIS:
{format_coverage_gaps(context.coverage_map)}
{spec_part}
INSTRUCTIONS:
1. Write a CONCISE yet COMPREHENSIVE professional section for "{section.name}"
2. {page_guidance_for(section)}
3. Use information from the uploaded evidence where available
4. Fill gaps with professional compliance language (no verbose explanations)
5. Use bullet points, tables, and numbered lists instead of long paragraphs
6. Include specific procedures, frequencies, and responsibilities
7. Use formal compliance/audit language
8. Make the section implementable and auditable
9. Do NOT include template placeholders or [TO BE COMPLETED]
10. Reference relevant requirements where applicable
11. Eliminate redundant information - be direct and precise
12. Focus on actionable content, not explanatory preamble

OUTPUT FORMAT:
{section.heading}

[Write concise, well-structured section content.]

Start writing now:"""


def build_batch_prompt(
    sections: Sequence[ComplianceSection], context: GenerationContext, settings: Settings
) -> str:
    """Prompt asking for several sections wrapped in SECTION_START/SECTION_END delimiters."""
    parts: list[str] = []
    for section in sections:
        evidence = context.evidence_for(section, settings.BATCH_EVIDENCE_CHAR_BUDGET)
        part = f"## Section {section.id}: {section.name}\n{section.description}\n\nEvidence:\n{evidence}"
        spec_block = _specification_block(section, context)
        if spec_block:
            part += f"\n\n{spec_block}"
        parts.append(part)
    section_prompts = "\n\n".join(parts)

    return f"""You are a professional compliance document writer specializing in Primus GFS certification.

TASK: Generate the following low-priority compliance document sections CONCISELY. Each section should be 300-500 words maximum.

{section_prompts}

INSTRUCTIONS:
1. Write CONCISE, PROFESSIONAL sections
2. Use bullet points and tables where appropriate to reduce verbosity
3. Focus on essential information only
4. Each section should be standalone
5. Include specific procedures, frequencies, responsibilities
6. Use formal compliance language
7. Keep each section to 1 page or less
8. Do NOT include template placeholders

FORMAT YOUR RESPONSE EXACTLY AS:
--- SECTION_START: [id] ---
[Section content]
--- SECTION_END: [id] ---

Start now:"""


# =============================================================================
# Output cleanup
# =============================================================================


def ensure_section_prefix(section: ComplianceSection, content: str) -> str:
    """Make content start with the canonical "{id}. {name}" heading."""
    heading = section.heading
    if content.startswith(heading):
        return content
    if content[: len(heading)].lower() == heading.lower():
        return heading + content[len(heading) :]
    return f"{heading}\n\n{content}"


def clean_generated_content(section: ComplianceSection, raw: str) -> str:
    """Strip code fences, cut post-signature content, enforce the heading."""
    content = _FENCE_OPEN_RE.sub("", raw)
    content = _FENCE_CLOSE_RE.sub("", content).strip()
    content = enforce_signature_boundary(content)
    return ensure_section_prefix(section, content)


def placeholder_section(section: ComplianceSection) -> GeneratedSection:
    return GeneratedSection(
        id=section.id,
        name=section.name,
        content=f"{section.heading}\n\n{PLACEHOLDER_TEXT}",
    )


def is_placeholder(generated: GeneratedSection) -> bool:
    return generated.content.rstrip().endswith(PLACEHOLDER_TEXT)


# =============================================================================
# Individual sections
# =============================================================================


async def generate_section(
    section: ComplianceSection,
    context: GenerationContext,
    invoke: InvokeFn = invoke_claude,
    settings: Settings | None = None,
) -> str:
    """
    Generate one section with a single LLM call.

    Returns:
        Cleaned content starting with "{id}. {name}"

    Raises:
        MetaCommentaryDetected: If the answer talks about itself instead of
            being document content; the retry loop regenerates it
    """
    settings = settings or get_settings()
    prompt = build_section_prompt(section, context, settings)
    response = await invoke(prompt, token_budget_for(section, settings))
    if response.truncated:
        log_with_context(
            logger, logging.WARNING, "Section response truncated at token budget", section_id=section.id
        )
    content = clean_generated_content(section, response.text)
    meta = check_forbidden_patterns_only(content)
    if meta:
        raise MetaCommentaryDetected(section.id, meta)
    return content


async def generate_section_with_retry(
    section: ComplianceSection,
    context: GenerationContext,
    invoke: InvokeFn = invoke_claude,
    policy: RetryPolicy | None = None,
    settings: Settings | None = None,
) -> GeneratedSection:
    """
    Generate one section with retry, exponential backoff and per-attempt timeout.

    Raises:
        SectionGenerationFailure: When every attempt failed
    """
    settings = settings or get_settings()
    policy = policy or RetryPolicy.from_settings(settings)

    log_with_context(logger, logging.INFO, f"Generating Section {section.id}: {section.name}", section_id=section.id)
    start = time.monotonic()

    content = await with_retry(
        lambda: generate_section(section, context, invoke, settings),
        policy,
        label=f"Section {section.id}",
    )

    log_with_context(
        logger,
        logging.INFO,
        f"Section {section.id} completed ({len(content)} chars)",
        section_id=section.id,
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    return GeneratedSection(id=section.id, name=section.name, content=content)


async def generate_individual_sections(
    sections: Sequence[ComplianceSection],
    context: GenerationContext,
    invoke: InvokeFn = invoke_claude,
    policy: RetryPolicy | None = None,
    settings: Settings | None = None,
) -> list[GeneratedSection]:
    """
    Generate sections concurrently, one call each.

    The first exhausted section raises; sibling calls already in flight are
    not cancelled.

    Raises:
        SectionGenerationFailure: When any section exhausts its retries
    """
    return list(
        await asyncio.gather(
            *(generate_section_with_retry(s, context, invoke, policy, settings) for s in sections)
        )
    )


# =============================================================================
# Batched sections
# =============================================================================


def _extract_block(section: ComplianceSection, batch_text: str) -> str:
    pattern = re.compile(
        rf"--- SECTION_START: {section.id} ---(.*?)--- SECTION_END: {section.id} ---",
        re.IGNORECASE | re.DOTALL,
    )
    match = pattern.search(batch_text)
    if not match:
        raise BatchParseFailure(section.id)
    return match.group(1).strip()


def parse_batched_response(
    sections: Sequence[ComplianceSection], batch_text: str
) -> list[GeneratedSection]:
    """Split a batched response by section id; always one result per section."""
    results: list[GeneratedSection] = []
    for section in sections:
        try:
            block = _extract_block(section, batch_text)
        except BatchParseFailure as e:
            log_with_context(logger, logging.WARNING, str(e), section_id=section.id)
            results.append(placeholder_section(section))
            continue
        results.append(
            GeneratedSection(id=section.id, name=section.name, content=clean_generated_content(section, block))
        )
    return results


async def generate_batched_sections(
    sections: Sequence[ComplianceSection],
    context: GenerationContext,
    invoke: InvokeFn = invoke_claude,
    settings: Settings | None = None,
) -> list[GeneratedSection]:
    """
    Generate several sections in one LLM call.

    Returns:
        Exactly one GeneratedSection per input section, in input order;
        sections whose delimiters are missing get the placeholder

    Raises:
        SectionGenerationFailure: If the batched call itself fails or times out
    """
    settings = settings or get_settings()
    prompt = build_batch_prompt(sections, context, settings)
    policy = RetryPolicy(
        max_attempts=1,
        initial_delay=settings.SECTION_INITIAL_BACKOFF_SECONDS,
        timeout_seconds=settings.BATCH_TIMEOUT_SECONDS,
    )

    logger.info(f"Generating {len(sections)} batched sections: {[s.id for s in sections]}")
    response = await with_retry(
        lambda: invoke(prompt, settings.BATCH_MAX_TOKENS),
        policy,
        label=f"Batched sections {[s.id for s in sections]}",
    )
    if response.truncated:
        logger.warning("Batched response truncated at token budget; trailing sections may be missing")

    return parse_batched_response(sections, response.text)


async def generate_batchable_sections_with_fallback(
    sections: Sequence[ComplianceSection],
    context: GenerationContext,
    invoke: InvokeFn = invoke_claude,
    settings: Settings | None = None,
) -> list[GeneratedSection]:
    """
    Batched generation, falling back to individual calls if the batch fails.

    Never raises for generation failures: every section comes back as content
    or as the placeholder.
    """
    if not sections:
        return []
    settings = settings or get_settings()

    try:
        return await generate_batched_sections(sections, context, invoke, settings)
    except SectionGenerationFailure as e:
        logger.error(f"Batched generation failed, generating {len(sections)} sections individually: {e}")

    results = await asyncio.gather(
        *(generate_section_with_retry(s, context, invoke, settings=settings) for s in sections),
        return_exceptions=True,
    )

    generated: list[GeneratedSection] = []
    for section, result in zip(sections, results):
        if isinstance(result, BaseException):
            log_with_context(
                logger,
                logging.ERROR,
                f"Section {section.id} failed in fallback, using placeholder: {result}",
                section_id=section.id,
            )
            generated.append(placeholder_section(section))
        else:
            generated.append(result)
    return generated
