"""Application error taxonomy.

Every error carries the HTTP status it maps to at the route boundary,
where it is rendered as a JSON ``{"error": message}`` body.
"""

from fastapi import status


class RubyChatError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RequestValidationFailed(RubyChatError):
    """Missing or malformed request fields."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnsupportedFileType(RubyChatError):
    """Uploaded file suffix has no extractor."""

    status_code = status.HTTP_400_BAD_REQUEST


class FileTooLarge(RubyChatError):
    """Uploaded file exceeds the size limit."""

    status_code = status.HTTP_413_CONTENT_TOO_LARGE


class DocumentParseError(RubyChatError):
    """Text extraction from an uploaded document failed."""


class VendorCallFailed(RubyChatError):
    """Chat vendor returned a non-2xx status or could not be reached."""

    def __init__(self, message: str, vendor_status: int | None = None) -> None:
        super().__init__(message)
        self.vendor_status = vendor_status


class GenerationFailed(RubyChatError):
    """Generation vendor call failed.

    Unlike chat failures, the vendor's own status code is passed through.
    """

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Generation failed: {status_code}")
        self.status_code = status_code
        self.body = body
