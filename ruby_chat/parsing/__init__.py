"""Document parsing utilities for chat attachments.

Responsibilities:
    - Suffix-based dispatch to text, Word and PDF extractors
    - Whitespace normalization
    - Truncation to a fixed character budget

PDF support is optional and can be disabled through PDF_UPLOADS_ENABLED.
"""

from ruby_chat.parsing.document_parser import (
    MAX_CHARACTERS,
    TRUNCATION_MARKER,
    DocumentParser,
    ExtractedDocument,
    ParserConfig,
    extract,
    get_document_parser,
    normalize_text,
)
from ruby_chat.parsing.pdf_parser import PDFContent, PDFParseError, parse_pdf

__all__ = [
    "MAX_CHARACTERS",
    "TRUNCATION_MARKER",
    "DocumentParser",
    "ExtractedDocument",
    "PDFContent",
    "PDFParseError",
    "ParserConfig",
    "extract",
    "get_document_parser",
    "normalize_text",
    "parse_pdf",
]
