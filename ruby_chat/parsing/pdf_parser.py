"""PDF text extraction with pypdf.

Only reached through ``parse_pdf``, so the document parser can leave
``.pdf`` out of its suffix table when PDF uploads are switched off.
"""

import io
import logging
from collections.abc import Iterator

from pydantic import BaseModel, Field
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ruby_chat.errors import DocumentParseError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
PDF_MAGIC_BYTES = b"%PDF"
PAGE_SEPARATOR = "\n\n"


class PDFContent(BaseModel):
    """Text pulled out of a PDF.

    Attributes:
        text: Page texts joined with blank lines.
        pages: Page count of the document.
    """

    text: str
    pages: int = Field(ge=0)


class PDFParseError(DocumentParseError):
    """The bytes are not a readable PDF."""


def _check_header(file_content: bytes) -> None:
    if not file_content:
        raise PDFParseError("Empty file provided")
    if len(file_content) > MAX_FILE_SIZE:
        raise PDFParseError(
            f"PDF of {len(file_content) / (1024 * 1024):.1f}MB exceeds maximum allowed "
            f"({MAX_FILE_SIZE // (1024 * 1024)}MB)"
        )
    if not file_content.lstrip()[:10].startswith(PDF_MAGIC_BYTES):
        raise PDFParseError("Invalid PDF: missing %PDF header")


def _open_reader(file_content: bytes) -> tuple[PdfReader, int]:
    try:
        reader = PdfReader(io.BytesIO(file_content))
        page_count = len(reader.pages)
    except PdfReadError as e:
        raise PDFParseError(f"Corrupt PDF: {e}") from e
    except Exception as e:
        raise PDFParseError(f"Failed to read PDF: {e}") from e
    if page_count == 0:
        raise PDFParseError("PDF has no pages")
    return reader, page_count


def _page_texts(reader: PdfReader) -> Iterator[str]:
    # Unreadable pages are skipped
    for number, page in enumerate(reader.pages, start=1):
        try:
            text = page.extract_text()
        except Exception as e:
            logger.warning(f"Skipping page {number}, text extraction failed: {e}")
            continue
        if text:
            yield text


def parse_pdf(file_content: bytes) -> PDFContent:
    """Extract the text of every page of a PDF.

    Args:
        file_content: Raw bytes of the uploaded file.

    Returns:
        PDFContent with the joined page text and page count.

    Raises:
        PDFParseError: Empty, oversized, not a PDF, or unreadable.
    """
    _check_header(file_content)
    reader, page_count = _open_reader(file_content)

    text = PAGE_SEPARATOR.join(_page_texts(reader))
    if not text.strip():
        logger.info(f"PDF with {page_count} pages has no text layer")

    return PDFContent(text=text, pages=page_count)
