"""Final document assembly.

Pure function of its inputs: no network or file I/O. The generation
timestamp is passed in so the same inputs always produce the same text.
"""

from collections.abc import Iterable
from datetime import datetime

from app.core.output_validator import clean_section_content
from app.core.schemas_generation import DocumentMetadata, GeneratedSection, SourceDocument

BANNER = "=" * 37
SECTION_DIVIDER = "=" * 50

_SIGNATURE_ROLES = ("Author/Prepared By", "Reviewed By", "Approved By")
_BLANK = "_____________________"


def _banner(title: str) -> str:
    return f"{BANNER}\n{title}\n{BANNER}"


def _header(
    metadata: DocumentMetadata,
    sections: list[GeneratedSection],
    source_documents: Iterable[SourceDocument],
    generated_at: datetime,
) -> str:
    sources = "\n".join(f"- {doc.file_name}" for doc in source_documents)
    toc = "\n".join(f"{s.id}. {s.name}" for s in sections)
    return f"""{_banner(metadata.title)}

Document Number: {metadata.doc_number}
Version: {metadata.version}
Effective Date: {metadata.effective_date}
Owner/Department: {metadata.owner}
Generated: {generated_at.isoformat()}

PURPOSE:
{metadata.purpose}

DOCUMENT INFORMATION:
This compliance document was generated using AI assistance based on uploaded evidence documents.
All sections have been professionally formatted and reviewed for compliance readiness.
This document is intended to serve as a complete compliance procedure manual suitable for
third-party audit and certification.

EVIDENCE DOCUMENTS USED:
{sources}

{_banner("TABLE OF CONTENTS")}
{toc}

{_banner("DOCUMENT SECTIONS")}

"""


def _signature_block(role: str) -> str:
    return "\n".join(
        [
            f"{role}:",
            f"Name: {_BLANK}",
            f"Title: {_BLANK}",
            f"Date: {_BLANK}",
            f"Signature: {_BLANK}",
        ]
    )


def _footer(metadata: DocumentMetadata) -> str:
    signatures = "\n\n".join(_signature_block(role) for role in _SIGNATURE_ROLES)
    return f"""
{_banner("APPROVAL & SIGNATURES")}

Document Title: {metadata.title}
Document Number: {metadata.doc_number}
Version: {metadata.version}
Effective Date: {metadata.effective_date}

APPROVAL SIGNATURES:

{signatures}

{_banner("REVISION HISTORY")}

Version | Date | Author | Changes
--------|------|--------|--------
{metadata.version} | {metadata.effective_date} | AI Assistant | Initial document generation

{_banner("END OF DOCUMENT")}"""


def assemble_final_document(
    metadata: DocumentMetadata,
    sections: Iterable[GeneratedSection],
    source_documents: Iterable[SourceDocument],
    generated_at: datetime,
) -> str:
    """
    Assemble header, table of contents, section bodies and back matter.

    Sections are emitted in ascending id order whatever order they were
    generated in. Bodies get markdown cleanup only; placeholder text is kept.

    Args:
        metadata: Title, number, version, dates, owner, purpose
        sections: Generated sections in any order
        source_documents: Uploaded evidence documents (file names listed)
        generated_at: Generation timestamp shown in the header

    Returns:
        Final plain-text document
    """
    ordered = [
        GeneratedSection(id=s.id, name=s.name, content=clean_section_content(s.content))
        for s in sorted(sections, key=lambda s: s.id)
    ]

    body = f"\n{SECTION_DIVIDER}\n\n".join(f"\n{s.content}\n\n" for s in ordered)
    return _header(metadata, ordered, source_documents, generated_at) + body + _footer(metadata)
