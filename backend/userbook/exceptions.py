"""
Userbook Backend - Exception Hierarchy
======================================

What:  Application-specific exceptions, one per failure the stores can report.
How:   Each exception carries a client-safe message plus a context dict that is
       logged but never returned. Global handlers in main.py map each class to
       an HTTP status.

Exception Hierarchy:
    UserbookError (base)
    ├── ValidationError         → 400 Bad Request
    ├── NotFoundError           → 404 Not Found
    ├── StoreUnavailableError   → 503 Service Unavailable
    └── AssetWriteError         → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class UserbookError(Exception):
    """
    Base exception for all Userbook errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(UserbookError):
    """
    Raised when client input is rejected by a store.

    When:    Upload larger than max_file_size, asset path escaping the upload root.
    HTTP:    400 Bad Request

    Missing form fields never get this far: FastAPI rejects them with 422.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(UserbookError):
    """
    Raised when a requested record or asset does not exist.

    When:    get_by_id / update with an unknown id, or an unknown asset name.
    HTTP:    404 Not Found

    An update for an unknown id raises before anything is written.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class StoreUnavailableError(UserbookError):
    """
    Raised when the record document cannot be read, parsed or written.

    When:    Document missing, malformed JSON, not a list of records, or the
             replacement write failed.
    HTTP:    503 Service Unavailable

    A corrupt document keeps raising this on every operation until it is
    repaired by hand; the store never rewrites a document it could not parse.
    """

    def __init__(
        self,
        message: str = "The user store is currently unavailable. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AssetWriteError(UserbookError):
    """
    Raised when an uploaded image could not be fully persisted.

    When:    Disk full, permission denied, or no free asset name after retries.
    HTTP:    500 Internal Server Error

    No filename is returned and no partial file is left behind, so a caller
    can never link a record to a half-written asset.
    """

    def __init__(
        self,
        message: str = "Failed to save uploaded image. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
