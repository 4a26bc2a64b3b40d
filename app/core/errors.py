"""Exception taxonomy for specification loading and section generation."""


class ComplianceEngineError(Exception):
    """Base class for compliance engine errors."""


class SpecificationNotFoundError(ComplianceEngineError):
    """No specification record exists (or it is unreadable) for the identifiers.

    Specifications are static deploy-time content, so this is never retried.
    """

    def __init__(self, message: str, module_id: str | None = None, code: str | None = None):
        super().__init__(message)
        self.module_id = module_id
        self.code = code


class SectionGenerationTimeoutError(ComplianceEngineError):
    """A single generation attempt exceeded its timeout."""

    def __init__(self, label: str, timeout_seconds: float):
        super().__init__(f"{label} timed out after {timeout_seconds}s")
        self.label = label
        self.timeout_seconds = timeout_seconds


class SectionGenerationFailure(ComplianceEngineError):
    """All attempts for a generation call failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException | None = None):
        detail = f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error"
        super().__init__(f"{label} failed after {attempts} attempt(s): {detail}")
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


class BatchParseFailure(ComplianceEngineError):
    """A section block is missing from a batched response."""

    def __init__(self, section_id: int):
        super().__init__(f"Section {section_id} delimiters not found in batched response")
        self.section_id = section_id


class MetaCommentaryDetected(ComplianceEngineError):
    """Generated section contains LLM meta-commentary instead of document content.

    Raised inside the retry loop so the section is regenerated.
    """

    def __init__(self, section_id: int, patterns: list[str]):
        super().__init__(f"Section {section_id} contains meta-commentary: {', '.join(patterns)}")
        self.section_id = section_id
        self.patterns = patterns
