"""Document text extraction for chat attachments.

Picks an extractor by file suffix, then normalizes the text so it can be
pasted into the first user message of a conversation.
"""

import io
import logging
import os
import re
from collections.abc import Callable

from docx import Document as DocxDocument
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from ruby_chat.errors import DocumentParseError, FileTooLarge, UnsupportedFileType
from ruby_chat.parsing.pdf_parser import MAX_FILE_SIZE, parse_pdf

load_dotenv()

logger = logging.getLogger(__name__)

MAX_CHARACTERS = 50_000
TRUNCATION_MARKER = "... [Document truncated due to length]"

_WHITESPACE_RUN = re.compile(r"\s+")


class ParserConfig(BaseModel):
    """Upload parsing settings.

    Attributes:
        pdf_enabled: Accept .pdf uploads. Off means PDFs are unsupported.
        max_characters: Text budget before truncation.
        max_file_size: Largest accepted upload in bytes.
    """

    pdf_enabled: bool = Field(
        default_factory=lambda: os.getenv("PDF_UPLOADS_ENABLED", "true"),
        validate_default=True,
    )
    max_characters: int = Field(default=MAX_CHARACTERS, ge=1)
    max_file_size: int = Field(default=MAX_FILE_SIZE, ge=1)

    @field_validator("pdf_enabled", mode="before")
    @classmethod
    def parse_flag(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower() not in ("0", "false", "no", "off", "")
        return v


class ExtractedDocument(BaseModel):
    """Normalized text pulled out of an uploaded file."""

    text: str
    character_count: int = Field(ge=0)


def _extract_plain_text(file_bytes: bytes) -> str:
    return file_bytes.decode("utf-8", errors="replace")


def _extract_docx(file_bytes: bytes) -> str:
    """Extract raw text from a .docx file (paragraphs + table cells)."""
    doc = DocxDocument(io.BytesIO(file_bytes))
    parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append("\t".join(cells))
    return "\n".join(parts)


def _extract_pdf(file_bytes: bytes) -> str:
    return parse_pdf(file_bytes).text


def normalize_text(text: str, max_characters: int = MAX_CHARACTERS) -> str:
    """Collapse whitespace runs, trim, and truncate to the character budget.

    Args:
        text: Raw extracted text.
        max_characters: Characters kept before the truncation marker.

    Returns:
        Single-spaced text, suffixed with TRUNCATION_MARKER if it was cut.
    """
    text = _WHITESPACE_RUN.sub(" ", text).strip()
    if len(text) > max_characters:
        text = text[:max_characters] + TRUNCATION_MARKER
    return text


class DocumentParser:
    """Suffix-dispatched text extraction."""

    def __init__(self, config: ParserConfig | None = None) -> None:
        self._config = config or ParserConfig()
        self._extractors: dict[str, Callable[[bytes], str]] = {
            ".txt": _extract_plain_text,
            ".md": _extract_plain_text,
            ".docx": _extract_docx,
        }
        if self._config.pdf_enabled:
            self._extractors[".pdf"] = _extract_pdf

    @property
    def supported_suffixes(self) -> tuple[str, ...]:
        return tuple(self._extractors)

    def _extractor_for(self, file_name: str) -> Callable[[bytes], str]:
        _, suffix = os.path.splitext(file_name.lower())
        extractor = self._extractors.get(suffix)
        if extractor is None:
            accepted = ", ".join(s.lstrip(".").upper() for s in self.supported_suffixes)
            raise UnsupportedFileType(
                f"Unsupported file type. Please upload {accepted} files."
            )
        return extractor

    def extract(self, file_bytes: bytes, file_name: str) -> ExtractedDocument:
        """Extract normalized text from an uploaded file.

        Args:
            file_bytes: Raw file content.
            file_name: Original file name; only its suffix is used.

        Returns:
            ExtractedDocument with normalized text and its length.

        Raises:
            UnsupportedFileType: Suffix has no extractor.
            FileTooLarge: Content exceeds the size limit.
            DocumentParseError: The extractor failed.
        """
        extractor = self._extractor_for(file_name)

        if len(file_bytes) > self._config.max_file_size:
            size_mb = len(file_bytes) / (1024 * 1024)
            limit_mb = self._config.max_file_size / (1024 * 1024)
            raise FileTooLarge(
                f"File size ({size_mb:.1f}MB) exceeds maximum allowed ({limit_mb:.0f}MB)"
            )

        try:
            raw_text = extractor(file_bytes)
        except DocumentParseError:
            raise
        except Exception as e:
            logger.warning(f"Text extraction failed for {file_name}: {e}")
            raise DocumentParseError("Failed to process file") from e

        text = normalize_text(raw_text, self._config.max_characters)
        return ExtractedDocument(text=text, character_count=len(text))


# Module-level singleton instance
_document_parser: DocumentParser | None = None


def get_document_parser() -> DocumentParser:
    """Get or create the global document parser."""
    global _document_parser
    if _document_parser is None:
        _document_parser = DocumentParser()
    return _document_parser


def extract(file_bytes: bytes, file_name: str) -> ExtractedDocument:
    """Extract text with the default parser configuration."""
    return get_document_parser().extract(file_bytes, file_name)
