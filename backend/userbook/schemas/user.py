"""
Userbook Backend - Pydantic Schemas
===================================

What:  The persisted record shape and the API contract.
How:   Attributes are snake_case; aliases carry the camelCase names used in the
       JSON document and in API payloads (firstName, userImage, ...).
       `populate_by_name` lets Python code build models with either spelling.

The same UserRecord model is used to parse the backing document, to write it
back, and to answer API calls, so the on-disk and on-wire layouts can't drift.
"""

from typing import Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Record Model - one entry of the persisted collection
# ══════════════════════════════════════════════════════════════════════════


class UserRecord(BaseModel):
    """
    What:  One user entry in the collection.
    Who:   Loaded and written by RecordStore; returned by every user endpoint.

    Text fields are optional here because documents written by the previous
    service may omit values that were missing from the submitted form.
    Unknown keys in the document are kept and written back unchanged.
    """
    id: int = Field(description="Store-assigned identifier, unique within the collection")
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    username: Optional[str] = Field(default=None)
    birthday: Optional[str] = Field(default=None)
    occupation: Optional[str] = Field(default=None)
    user_image: Optional[str] = Field(
        default=None,
        alias="userImage",
        description="Filename of the attached asset, null when no image is attached",
    )

    model_config = {"populate_by_name": True, "extra": "allow"}


# ══════════════════════════════════════════════════════════════════════════
# Input Models - values handed to the store by the request layer
# ══════════════════════════════════════════════════════════════════════════


class UserFields(BaseModel):
    """Field values for a new record. All five are required; formats are not checked."""
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    username: str
    birthday: str
    occupation: str

    model_config = {"populate_by_name": True}


class UserUpdate(BaseModel):
    """
    Field values for an edit.

    Only fields that are not None are applied; everything else on the record,
    including its id and position, stays as it was.
    """
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    username: Optional[str] = None
    birthday: Optional[str] = None
    occupation: Optional[str] = None

    model_config = {"populate_by_name": True}

    def supplied(self) -> dict:
        """Returns only the supplied fields, keyed by attribute name."""
        return self.model_dump(exclude_none=True)


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "user with ID '999' was not found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    record_store: str = Field(description="Record document: available, unavailable")
    asset_storage: str = Field(description="Upload directory: writable, unwritable")
    uptime_seconds: float = Field(description="Seconds since service started")
