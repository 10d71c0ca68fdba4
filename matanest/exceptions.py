"""
    Centralized exception handling for the FastAPI application.
"""
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
import logging

log = logging.getLogger(__name__)

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

class MediaItemNotFoundException(APIException):
    """Exception for when a media item is not found."""
    def __init__(self, item_id: str):
        super().__init__(status_code=404, detail=f"Media item '{item_id}' not found.")

class InvalidMediaException(APIException):
    """Exception for rejected uploads and invalid edit input."""
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

class KeywordNotFoundException(APIException):
    """Exception for a keyword index outside the item's keyword list."""
    def __init__(self, item_id: str, index: int):
        super().__init__(status_code=404, detail=f"Keyword {index} not found on media item '{item_id}'.")

class MediaStateConflictException(APIException):
    """Exception for operations that the item's (or the run's) state does not allow."""
    def __init__(self, detail: str):
        super().__init__(status_code=409, detail=detail)

class NothingToExportException(APIException):
    """Exception for a CSV export without any completed item."""
    def __init__(self):
        super().__init__(status_code=404, detail="No completed files with metadata to export.")

class ApiKeyNotFoundException(APIException):
    def __init__(self, key_id: str):
        super().__init__(status_code=404, detail=f"API key '{key_id}' not found.")

class InvalidApiKeyException(APIException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class GenerationError(Exception):
    """Base class for metadata generation failures.

    The message is shown to the user as the item's error text.
    """

class MissingCredentialError(GenerationError):
    def __init__(self):
        super().__init__("API Key not configured. Please set your Google AI Studio API key.")

class InvalidMetadataFormatError(GenerationError):
    def __init__(self):
        super().__init__("Invalid metadata format received from API.")

class GenerationFailedError(GenerationError):
    def __init__(self):
        super().__init__("Failed to generate metadata. Please check the server logs for details.")


async def api_exception_handler(request: Request, exc: APIException):
    """Turns a domain error into a JSON detail response."""
    # 4xx are caller mistakes and logged without traceback
    if exc.status_code < 500:
        log.warning("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.detail)
    else:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.detail, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

async def http_exception_handler(request: Request, exc: HTTPException):
    log.warning("%s %s returned %d: %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Hides unexpected failures behind a generic 500."""
    log.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred."},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
