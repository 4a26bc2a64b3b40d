"""Output validator and sanitizer for generated compliance documents.

Generated text must contain only audit-ready content: no meta-commentary,
placeholders or compliance summaries appended after the approval signatures.
Validation never blocks generation; callers log the issues for operator
review and keep the content.

Usage:
    from app.core.output_validator import enforce_signature_boundary, validate_llm_output

    result = validate_llm_output(section_text, section_id=8)
    if not result.valid:
        logger.warning("; ".join(result.issues))
"""

import re
from dataclasses import dataclass, field
from typing import Literal, NamedTuple

from app.core.compliance_sections import COMPLIANCE_SECTIONS, SECTIONS_BY_ID
from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

Severity = Literal["CRITICAL", "HIGH", "MEDIUM"]
IssueKind = Literal["FORBIDDEN_PATTERN", "MISSING_SECTION", "INCOMPLETE_CONTENT", "PLACEHOLDER_DETECTED"]
WarningKind = Literal["SUSPICIOUS_CONTENT", "FORMATTING_ISSUE", "LENGTH_CONCERN"]

BLOCKING_SEVERITIES = frozenset({"CRITICAL", "HIGH"})


# ============================================================================
# Result types
# ============================================================================


@dataclass
class ValidationIssue:
    kind: IssueKind
    severity: Severity
    message: str
    context: str | None = None
    line_number: int | None = None


@dataclass
class ValidationWarning:
    kind: WarningKind
    message: str
    context: str | None = None


@dataclass
class ValidationResult:
    """Outcome of validating one section or a whole document.

    ``valid`` is False when any CRITICAL or HIGH issue was found.
    """

    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)

    @property
    def issues(self) -> list[str]:
        return [e.message for e in self.errors]

    @property
    def critical_errors(self) -> list[ValidationIssue]:
        return [e for e in self.errors if e.severity in BLOCKING_SEVERITIES]


# ============================================================================
# Pattern tables
# ============================================================================


class ForbiddenPattern(NamedTuple):
    pattern: re.Pattern[str]
    description: str
    severity: Severity
    kind: IssueKind = "FORBIDDEN_PATTERN"
    # LLM meta-commentary; a section containing it is regenerated
    meta: bool = False


def _p(regex: str, flags: int = re.IGNORECASE) -> re.Pattern[str]:
    return re.compile(regex, flags)


FORBIDDEN_PATTERNS: tuple[ForbiddenPattern, ...] = (
    # Bracketed placeholders
    ForbiddenPattern(_p(r"\[\.{3,}\]"), "Ellipsis brackets indicating omitted content", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"\[…\]"), "Ellipsis character in brackets", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"\[continued\s+as\s+per\s+template\]"), "Continuation placeholder", "CRITICAL"),
    ForbiddenPattern(_p(r"\[the\s+full\s+document\s+would\s+continue\]"), "Document continuation note", "CRITICAL"),
    ForbiddenPattern(_p(r"\[similar\s+to\s+above\]"), "Reference to previous content", "CRITICAL"),
    ForbiddenPattern(_p(r"\[repeat\s+for\s+each\]"), "Repetition instruction", "CRITICAL"),
    ForbiddenPattern(_p(r"\[insert(?:\s+[^\]]*)?\]"), "Insertion placeholder", "CRITICAL", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"\[fill\s+in\]"), "Fill-in placeholder", "CRITICAL", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"\[tbd\]"), "To be determined placeholder", "HIGH", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"\[todo\]"), "Todo placeholder", "HIGH", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"\[to\s+be\s+completed\]"), "To be completed placeholder", "HIGH", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"\[content\s+not\s+available\]"), "Missing section content", "HIGH", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"\[pending\]"), "Pending status indicator", "HIGH", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"\[see\s+section\s+\d+\]"), "Cross-reference instruction", "MEDIUM"),
    # Compliance auto-correction announcements
    ForbiddenPattern(_p(r"COMPLIANCE\s+AUTO[-\s]?CORRECTION"), "Auto-correction announcement", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"\[COMPLIANCE\s+AUTO\]"), "Bracketed compliance message", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"missing\s+requirement\(s\)\s+added"), "Missing requirement notice", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"AUTO[-\s]?INJECTED"), "Auto-injection notice", "CRITICAL", meta=True),
    # LLM meta-commentary
    ForbiddenPattern(_p(r"would\s+you\s+like\s+me\s+to"), "LLM asking for permission", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"I\s+can\s+help\s+you"), "LLM offering help", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"I\s+have\s+generated"), "LLM describing its action", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"I\s+will\s+now\s+create"), "LLM announcing creation", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"Here\s+is\s+the\s+(?:complete|final|revised)"), "LLM presenting output", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"The\s+following\s+document"), "LLM introducing document", "HIGH"),
    ForbiddenPattern(_p(r"This\s+document\s+has\s+been\s+generated"), "Generation statement", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"key\s+integrations\s+include"), "LLM listing integrations", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"note\s+that\s+this\s+document"), "LLM adding notes about document", "HIGH"),
    # Explanations instead of content
    ForbiddenPattern(_p(r"EXPLANATION:"), "Explanation header", "CRITICAL"),
    ForbiddenPattern(_p(r"Note:\s*The\s+SOP"), "Notes about the SOP", "CRITICAL"),
    ForbiddenPattern(_p(r"Important:\s*This"), "Important notice about generation", "HIGH"),
    ForbiddenPattern(_p(r"Please\s+note:"), "Notice to reader", "HIGH"),
    # Unfilled template variables
    ForbiddenPattern(_p(r"\{\{[^}]+\}\}", 0), "Unfilled template variable", "HIGH", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"\$\{[^}]+\}", 0), "Unfilled template literal", "HIGH", "PLACEHOLDER_DETECTED"),
    ForbiddenPattern(_p(r"%[A-Z_]+%", 0), "Environment variable placeholder", "MEDIUM", "PLACEHOLDER_DETECTED"),
    # Descriptions of content instead of content
    ForbiddenPattern(_p(r"The\s+full\s+document\s+would\s+include"), "Description of what should be included", "CRITICAL"),
    ForbiddenPattern(_p(r"Additional\s+sections\s+would\s+cover"), "Description of omitted sections", "CRITICAL"),
    ForbiddenPattern(_p(r"This\s+section\s+should\s+contain"), "Description instead of content", "CRITICAL"),
    ForbiddenPattern(_p(r"Below\s+is\s+a\s+comprehensive"), "LLM introducing comprehensive document", "HIGH", meta=True),
    # First-person statements
    ForbiddenPattern(_p(r"^I\s+(?:have|will|am|should)\s+", re.IGNORECASE | re.MULTILINE), "First-person statement", "CRITICAL", meta=True),
    ForbiddenPattern(_p(r"\bwe\s+can\s+see\s+that"), "Analytical first-person plural", "HIGH"),
    # Compliance summaries the model appends after the signatures
    ForbiddenPattern(_p(r"CHEMICAL\s+COMPLIANCE:"), "Post-signature compliance content", "CRITICAL"),
    ForbiddenPattern(_p(r"PEST\s+(?:CONTROL\s+)?COMPLIANCE:"), "Post-signature pest compliance", "CRITICAL"),
    ForbiddenPattern(_p(r"DOCUMENT\s+CONTROL\s+COMPLIANCE:"), "Post-signature document control compliance", "CRITICAL"),
    ForbiddenPattern(_p(r"GLASS[^\n]*COMPLIANCE:"), "Post-signature glass compliance", "CRITICAL"),
    ForbiddenPattern(_p(r"HACCP\s+COMPLIANCE:"), "Post-signature HACCP compliance", "CRITICAL"),
    ForbiddenPattern(_p(r"TRACEABILITY\s+COMPLIANCE:"), "Post-signature traceability compliance", "CRITICAL"),
    ForbiddenPattern(_p(r"ALLERGEN\s+COMPLIANCE:"), "Post-signature allergen compliance", "CRITICAL"),
    ForbiddenPattern(_p(r"PROGRAM\s+COMPLIANCE\b"), "Post-signature program compliance", "CRITICAL"),
    ForbiddenPattern(_p(r"COMPLIANCE\s+SUMMARY"), "Post-signature compliance summary", "CRITICAL"),
    ForbiddenPattern(_p(r"ADDITIONAL\s+COMPLIANCE"), "Post-signature additional compliance", "CRITICAL"),
    ForbiddenPattern(_p(r"\bAPPENDIX\s+[A-Z]\b"), "Appendix after signatures", "CRITICAL"),
    ForbiddenPattern(_p(r"^NOTES:\s*$", re.IGNORECASE | re.MULTILINE), "Notes section after signatures", "HIGH"),
    ForbiddenPattern(_p(r"ADDITIONAL\s+NOTES"), "Additional notes after signatures", "HIGH"),
)

SUSPICIOUS_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r'e\.g\.,\s*"?[A-Z][^"\n]*"?'), "Example given instead of actual value"),
    (_p(r"such\s+as\s+\["), 'Bracket after "such as"'),
    (_p(r"including\s+but\s+not\s+limited\s+to"), "Generic open-ended list"),
    (_p(r"\(as\s+applicable\)"), "Conditional applicability phrase"),
    (_p(r"\(if\s+any\)"), "Conditional existence phrase"),
    (_p(r"per\s+facility\s+procedures"), "Vague reference to other procedures"),
    (re.compile(r"\bN/A\b"), "Not applicable marker"),
)

# Title variants accepted when checking that every section is present
MANDATORY_SECTION_ALTERNATES: dict[int, tuple[str, ...]] = {
    1: ("Title & Document Control", "Document Control", "Title"),
    2: ("Purpose / Objective", "Purpose", "Objective"),
    3: ("Scope",),
    4: ("Definitions & Abbreviations", "Definitions", "Abbreviations"),
    5: ("Roles & Responsibilities", "Responsibilities", "Roles"),
    6: ("Prerequisites & Reference Documents", "Prerequisites", "Reference Documents", "References"),
    7: ("Hazard / Risk Analysis", "Hazard Analysis", "Risk Analysis"),
    8: ("Procedures",),
    9: ("Monitoring Plan", "Monitoring"),
    10: ("Verification & Validation Activities", "Verification", "Validation Activities"),
    11: ("Corrective & Preventive Action", "Corrective Action", "Preventive Action", "CAPA Protocol"),
    12: ("Traceability & Recall Elements", "Traceability", "Recall Elements"),
    13: ("Record Retention & Document Control", "Record Retention", "Records"),
    14: ("Compliance Crosswalk", "Crosswalk"),
    15: ("Revision History & Approval Signatures", "Revision History", "Approval Signatures"),
}

# "Approved By:" line plus the contiguous non-blank lines under it
_SIGNATURE_BLOCK_RE = re.compile(r"Approved\s+By:[^\n]*(?:\n(?![ \t]*\n)[^\n]*)*", re.IGNORECASE)

# Content after the signature block that is always cut
_FORBIDDEN_POST_SIGNATURE: tuple[re.Pattern[str], ...] = (
    _p(r"CHEMICAL\s+COMPLIANCE:"),
    _p(r"PEST\s+(?:CONTROL\s+)?COMPLIANCE:"),
    _p(r"DOCUMENT\s+CONTROL\s+COMPLIANCE:"),
    _p(r"GLASS[^\n]*COMPLIANCE:"),
    _p(r"HACCP\s+COMPLIANCE:"),
    _p(r"TRACEABILITY\s+COMPLIANCE:"),
    _p(r"ALLERGEN\s+COMPLIANCE:"),
    _p(r"PROGRAM\s+COMPLIANCE\b"),
    _p(r"COMPLIANCE\s+SUMMARY"),
    _p(r"ADDITIONAL\s+COMPLIANCE"),
    _p(r"\bAPPENDIX\s+[A-Z]:"),
    _p(r"\[COMPLIANCE\s+AUTO"),
    _p(r"missing\s+requirement[^\n]*added"),
)

# Broader set used to detect leftovers after the first cutoff pass
_POST_SIGNATURE_MARKERS: tuple[re.Pattern[str], ...] = _FORBIDDEN_POST_SIGNATURE + (
    _p(r"\bAPPENDIX\s+[A-Z]\b"),
    _p(r"ADDITIONAL\s+NOTES"),
    re.compile(r"\n\n[A-Z][A-Z ]+REQUIREMENTS:"),
    re.compile(r"\n\n[A-Z][A-Z ]+COMPLIANCE:"),
)

_CATALOG_HEADING_RE = re.compile(
    r"^(?:" + "|".join(re.escape(s.heading) for s in COMPLIANCE_SECTIONS) + r")\s*$",
    re.IGNORECASE,
)


# ============================================================================
# Detection
# ============================================================================


def _extract_context(text: str, index: int, context_length: int = 100) -> str:
    start = max(0, index - context_length)
    end = min(len(text), index + context_length)
    return ("..." if start > 0 else "") + text[start:end] + ("..." if end < len(text) else "")


def _line_number(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def _prefix(section_id: int | None) -> str:
    return f"Section {section_id}: " if section_id is not None else ""


def detect_forbidden_patterns(text: str, section_id: int | None = None) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for entry in FORBIDDEN_PATTERNS:
        for match in entry.pattern.finditer(text):
            issues.append(
                ValidationIssue(
                    kind=entry.kind,
                    severity=entry.severity,
                    message=f"{_prefix(section_id)}{entry.description} '{match.group(0).strip()}'",
                    context=_extract_context(text, match.start()),
                    line_number=_line_number(text, match.start()),
                )
            )
    return issues


def detect_suspicious_patterns(text: str) -> list[ValidationWarning]:
    return [
        ValidationWarning(
            kind="SUSPICIOUS_CONTENT",
            message=f"Suspicious pattern: {description}",
            context=_extract_context(text, match.start()),
        )
        for pattern, description in SUSPICIOUS_PATTERNS
        for match in pattern.finditer(text)
    ]


def _validate_section_structure(text: str) -> list[ValidationIssue]:
    lowered = text.lower()
    issues: list[ValidationIssue] = []
    for number, titles in MANDATORY_SECTION_ALTERNATES.items():
        if not any(f"{number}. {title.lower()}" in lowered for title in titles):
            issues.append(
                ValidationIssue(
                    kind="MISSING_SECTION",
                    severity="HIGH",
                    message=f"Mandatory section missing: {number}. {titles[0]}",
                )
            )
    return issues


def _detect_incomplete_document(text: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    lines = [line.strip() for line in text.split("\n")]
    non_empty = [(i, line) for i, line in enumerate(lines) if line]

    # Catalog heading immediately followed by another catalog heading
    for (i, line), (_, following) in zip(non_empty, non_empty[1:]):
        if _CATALOG_HEADING_RE.match(line) and _CATALOG_HEADING_RE.match(following):
            issues.append(
                ValidationIssue(
                    kind="INCOMPLETE_CONTENT",
                    severity="HIGH",
                    message=f"Section appears to have no content: {line}",
                    context=line,
                    line_number=i + 1,
                )
            )

    min_words = get_settings().MIN_DOCUMENT_WORDS
    word_count = len(text.split())
    if word_count < min_words:
        issues.append(
            ValidationIssue(
                kind="INCOMPLETE_CONTENT",
                severity="CRITICAL",
                message=(
                    f"Document too short ({word_count} words). Audit-ready SOPs require "
                    f"comprehensive content (minimum {min_words} words)."
                ),
            )
        )
    return issues


def _validate_section(text: str, section_id: int) -> tuple[list[ValidationIssue], list[ValidationWarning]]:
    issues: list[ValidationIssue] = []
    warnings: list[ValidationWarning] = []

    if not text.lstrip().startswith(f"{section_id}."):
        section = SECTIONS_BY_ID.get(section_id)
        expected = section.heading if section else f"{section_id}."
        issues.append(
            ValidationIssue(
                kind="INCOMPLETE_CONTENT",
                severity="MEDIUM",
                message=f"Section {section_id}: missing leading section number (expected '{expected}')",
            )
        )

    min_chars = get_settings().MIN_SECTION_CHARS
    if len(text.strip()) < min_chars:
        warnings.append(
            ValidationWarning(
                kind="LENGTH_CONCERN",
                message=f"Section {section_id}: content too short ({len(text.strip())} chars, minimum {min_chars})",
            )
        )
    return issues, warnings


def validate_llm_output(text: str, section_id: int | None = None) -> ValidationResult:
    """
    Validate generated text for forbidden patterns and structure.

    With ``section_id`` the text is checked as a single section (leading
    section number, minimum length); without it, as a whole document
    (mandatory sections, empty sections, minimum word count).

    Args:
        text: Generated section or document text
        section_id: Catalog id when validating a single section

    Returns:
        ValidationResult; issue messages name the section id and the
        offending text
    """
    errors: list[ValidationIssue] = []
    warnings: list[ValidationWarning] = []

    if has_post_signature_content(text):
        errors.append(
            ValidationIssue(
                kind="FORBIDDEN_PATTERN",
                severity="CRITICAL",
                message=(
                    f"{_prefix(section_id)}Post-signature content detected "
                    "(compliance summaries, appendices, or notes after final signature)"
                ),
                context='Content found after "Approved By:" signature block',
            )
        )

    errors.extend(detect_forbidden_patterns(text, section_id))
    warnings.extend(detect_suspicious_patterns(text))

    if section_id is not None:
        section_errors, section_warnings = _validate_section(text, section_id)
        errors.extend(section_errors)
        warnings.extend(section_warnings)
    else:
        errors.extend(_validate_section_structure(text))
        errors.extend(_detect_incomplete_document(text))

    valid = not any(e.severity in BLOCKING_SEVERITIES for e in errors)
    return ValidationResult(valid=valid, errors=errors, warnings=warnings)


def check_forbidden_patterns_only(text: str) -> list[str]:
    """Descriptions of LLM meta-commentary found in ``text``, no structure checks."""
    return [
        entry.description
        for entry in FORBIDDEN_PATTERNS
        if entry.meta and entry.severity == "CRITICAL" and entry.pattern.search(text)
    ]


# ============================================================================
# Sanitization
# ============================================================================


_BOLD_LABEL_RE = re.compile(r"\*\*([^*\n]+?):\*\*")
_BOLD_RE = re.compile(r"\*\*([^*\n]+?)\*\*")
_COLON_SPACING_RE = re.compile(r":[ \t]+")


def _normalize_bold_and_colons(text: str) -> str:
    """``**Owner:**   QA`` and ``**Owner**:  QA`` both become ``Owner: QA``."""
    normalized = _BOLD_LABEL_RE.sub(r"\1:", text)
    normalized = _BOLD_RE.sub(r"\1", normalized)
    normalized = normalized.replace("**", "")
    return _COLON_SPACING_RE.sub(": ", normalized)


def sanitize_output(text: str) -> str:
    """Remove minor artifacts. Critical issues are not fixed here."""
    sanitized = re.sub(r"```\w*\n?", "", text)
    sanitized = re.sub(r"\n{4,}", "\n\n\n", sanitized)
    sanitized = sanitized.strip()

    # Leaked XML-like tags
    sanitized = re.sub(r"</?[a-z]+>", "", sanitized, flags=re.IGNORECASE)

    sanitized = sanitized.replace("***", "")
    sanitized = re.sub(r"~~(.+?)~~", r"\1", sanitized)
    sanitized = _normalize_bold_and_colons(sanitized)

    # Exactly one blank line after numbered headers
    sanitized = re.sub(r"(\d+\.[ \t]+[^\n]+)\n{2,}", r"\1\n\n", sanitized)

    # JSON fragments at either end
    sanitized = re.sub(r'^\s*\{[^}]*"[^"]*":\s*"[^"]*"[^}]*\}\s*', "", sanitized)
    sanitized = re.sub(r'\s*\{[^}]*"[^"]*":\s*"[^"]*"[^}]*\}\s*$', "", sanitized)
    return sanitized


def strip_compliance_annotations(text: str) -> str:
    """Strip auto-injected "XYZ COMPLIANCE:" headers and bracketed announcements.

    Also removes lines consisting only of a bracketed note, so do not apply it
    to sections that may legitimately carry placeholders for review.
    """
    cleaned = re.sub(r"\[COMPLIANCE AUTO-CORRECTION:[^\]]*\]", "", text, flags=re.IGNORECASE)
    cleaned = re.sub(r"\n\n[A-Z][A-Z ]+COMPLIANCE:[ \t]*\n", "\n\n", cleaned)
    cleaned = re.sub(r"^[A-Z][A-Z ]+COMPLIANCE:[ \t]*\n", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"\n[A-Z_ ]+REQUIREMENTS:[ \t]*\n", "\n", cleaned)
    cleaned = re.sub(r"^\[.*\][ \t]*$", "", cleaned, flags=re.MULTILINE)
    cleaned = _normalize_bold_and_colons(cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def clean_section_content(content: str) -> str:
    """Normalize markdown left in a section body before assembly."""
    cleaned = re.sub(r"^```[a-z]*\n?", "", content, flags=re.MULTILINE)
    cleaned = re.sub(r"\n?```$", "", cleaned, flags=re.MULTILINE)

    # Markdown headers
    cleaned = re.sub(r"^#+\s+", "", cleaned, flags=re.MULTILINE)

    cleaned = re.sub(r"\*{3,}", "**", cleaned)
    cleaned = re.sub(r"^\*\*([^*\n]+):\*\*[ \t]*", r"\1: ", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"^\*\*([^*\n]+):[ \t]*", r"\1: ", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"^- \*\*([^*\n]+):\*\*[ \t]*", r"- \1: ", cleaned, flags=re.MULTILINE)

    # Colon spacing within a line
    cleaned = re.sub(r":[ \t]+", ": ", cleaned)

    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


# ============================================================================
# Signature boundary
# ============================================================================


def _last_signature_block(text: str) -> re.Match[str] | None:
    last = None
    for match in _SIGNATURE_BLOCK_RE.finditer(text):
        last = match
    return last


def has_post_signature_content(text: str) -> bool:
    """True if compliance summaries, appendices or notes follow the last signature block."""
    block = _last_signature_block(text)
    if block is None:
        return False
    after = text[block.end() :]
    return any(pattern.search(after) for pattern in _POST_SIGNATURE_MARKERS)


def cutoff_after_signatures(text: str, aggressive: bool = False) -> str:
    """
    Truncate content following the final "Approved By:" signature block.

    By default only cuts when clearly forbidden content follows, so valid
    trailing sections (revision history) survive. ``aggressive`` cuts whenever
    ``has_post_signature_content`` holds. Both modes are idempotent.
    """
    block = _last_signature_block(text)
    if block is None:
        return text

    after = text[block.end() :]
    if aggressive:
        should_cut = any(pattern.search(after) for pattern in _POST_SIGNATURE_MARKERS)
    else:
        should_cut = any(pattern.search(after) for pattern in _FORBIDDEN_POST_SIGNATURE)

    if not should_cut:
        return text

    logger.info(f"Removing {len(after)} chars of post-signature content (aggressive={aggressive})")
    return text[: block.end()].rstrip()


def enforce_signature_boundary(text: str) -> str:
    """Cut post-signature content, with a second aggressive pass if any remains."""
    cut = cutoff_after_signatures(text)
    if has_post_signature_content(cut):
        logger.warning("Post-signature content remains after cutoff, applying aggressive cutoff")
        cut = cutoff_after_signatures(cut, aggressive=True)
    return cut


def finalize_generated_document(text: str, strip_annotations: bool = False) -> tuple[str, ValidationResult]:
    """
    Sanitize a complete generated document and validate the result.

    Returns:
        Tuple of (final text, validation result for the final text)
    """
    final = sanitize_output(text)
    if strip_annotations:
        final = strip_compliance_annotations(final)
    final = enforce_signature_boundary(final)
    result = validate_llm_output(final)

    if not result.valid:
        logger.warning(f"Final document has {len(result.critical_errors)} blocking validation issue(s)")
    return final, result


def format_validation_report(result: ValidationResult) -> str:
    """Human-readable validation report."""
    lines = [
        "=" * 80,
        "DOCUMENT VALIDATION REPORT",
        "=" * 80,
        "",
        f"Status: {'VALID' if result.valid else 'INVALID'}",
        f"Errors: {len(result.errors)}",
        f"Warnings: {len(result.warnings)}",
        "",
    ]

    if result.errors:
        lines.extend(["ERRORS:", "-" * 80])
        for error in result.errors:
            lines.append(f"[{error.severity}] {error.message}")
            if error.context:
                lines.append(f"  Context: {error.context}")
            if error.line_number:
                lines.append(f"  Line: {error.line_number}")
            lines.append("")

    if result.warnings:
        lines.extend(["WARNINGS:", "-" * 80])
        for warning in result.warnings:
            lines.append(f"[{warning.kind}] {warning.message}")
            if warning.context:
                lines.append(f"  Context: {warning.context}")
            lines.append("")

    lines.append("=" * 80)
    return "\n".join(lines)
