"""Document upload endpoint.

Handles file upload, suffix validation, and text extraction. The text is
returned to the browser, which holds it as the conversation's attachment.
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from ruby_chat.errors import DocumentParseError, RequestValidationFailed
from ruby_chat.models.schemas import ErrorResponse, UploadResponse
from ruby_chat.parsing.document_parser import DocumentParser, get_document_parser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def upload_document(
    file: UploadFile | None = File(default=None),
    parser: DocumentParser = Depends(get_document_parser),
) -> UploadResponse:
    """Upload a document and extract its text.

    Args:
        file: The uploaded document (multipart/form-data field ``file``).
        parser: Document parser service.

    Returns:
        UploadResponse with file name, normalized text and character count.

    Raises:
        400: Missing file or unsupported file type.
        413: File exceeds the size limit.
        500: Text extraction failed.
    """
    if file is None or not file.filename:
        raise RequestValidationFailed("No file provided")

    content = await file.read()

    try:
        document = parser.extract(content, file.filename)
    except DocumentParseError as e:
        logger.warning(f"Parse error for {file.filename}: {e}")
        raise

    logger.info(f"Extracted {document.character_count} characters from {file.filename}")
    return UploadResponse(
        success=True,
        file_name=file.filename,
        text=document.text,
        character_count=document.character_count,
    )
