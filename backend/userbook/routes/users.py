"""
Userbook Backend - User Route Handlers
======================================

What:  Create, list, fetch and edit users; serve uploaded images.
How:   Multipart form fields + optional `userImage` file are turned into
       UserFields / UserUpdate and handed to UserService.
Who:   Called by the frontend user forms and listing page.

Endpoints:
    POST /api/users          create (201)
    GET  /api/users          list, with X-Total-Count
    GET  /api/users/{id}     single user
    PUT  /api/users/{id}     edit supplied fields, optionally replace the image
    GET  /uploads/{filename} stored image bytes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, Response, UploadFile
from fastapi.responses import FileResponse

from userbook.schemas.user import ErrorResponse, UserFields, UserRecord, UserUpdate
from userbook.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])

_STORE_ERRORS = {
    503: {"description": "User store unavailable", "model": ErrorResponse},
}
_UPLOAD_ERRORS = {
    400: {"description": "Upload rejected (too large)", "model": ErrorResponse},
    500: {"description": "Upload could not be saved", "model": ErrorResponse},
}


@router.post(
    "/api/users",
    status_code=201,
    response_model=UserRecord,
    responses={**_UPLOAD_ERRORS, **_STORE_ERRORS},
    summary="Create a user",
)
async def create_user(
    first_name: str = Form(..., alias="firstName"),
    last_name: str = Form(..., alias="lastName"),
    username: str = Form(...),
    birthday: str = Form(...),
    occupation: str = Form(...),
    user_image: Optional[UploadFile] = File(None, alias="userImage"),
) -> UserRecord:
    """
    Create a user from a multipart form.

    The image is optional. When present it is stored first and the record's
    `userImage` is set to the generated filename.
    """
    fields = UserFields(
        first_name=first_name,
        last_name=last_name,
        username=username,
        birthday=birthday,
        occupation=occupation,
    )
    try:
        return await user_service.create_user(fields, upload=user_image)
    finally:
        if user_image is not None:
            await user_image.close()


@router.get(
    "/api/users",
    response_model=List[UserRecord],
    responses=_STORE_ERRORS,
    summary="List all users",
)
async def list_users(response: Response) -> List[UserRecord]:
    """Every user in insertion order."""
    users = await user_service.list_users()
    response.headers["X-Total-Count"] = str(len(users))
    return users


@router.get(
    "/api/users/{user_id}",
    response_model=UserRecord,
    responses={404: {"description": "User not found", "model": ErrorResponse}, **_STORE_ERRORS},
    summary="Get a single user by ID",
)
async def get_user(user_id: int) -> UserRecord:
    return await user_service.get_user(user_id)


@router.put(
    "/api/users/{user_id}",
    response_model=UserRecord,
    responses={
        404: {"description": "User not found", "model": ErrorResponse},
        **_UPLOAD_ERRORS,
        **_STORE_ERRORS,
    },
    summary="Edit a user",
)
async def update_user(
    user_id: int,
    first_name: Optional[str] = Form(None, alias="firstName"),
    last_name: Optional[str] = Form(None, alias="lastName"),
    username: Optional[str] = Form(None),
    birthday: Optional[str] = Form(None),
    occupation: Optional[str] = Form(None),
    user_image: Optional[UploadFile] = File(None, alias="userImage"),
) -> UserRecord:
    """
    Edit a user.

    Omitted fields keep their current values. Sending a new image repoints
    `userImage`; omitting it keeps the current one (images can't be cleared).
    """
    changes = UserUpdate(
        first_name=first_name,
        last_name=last_name,
        username=username,
        birthday=birthday,
        occupation=occupation,
    )
    try:
        return await user_service.update_user(user_id, changes, upload=user_image)
    finally:
        if user_image is not None:
            await user_image.close()


@router.get(
    "/uploads/{filename}",
    responses={
        200: {"description": "Image file"},
        400: {"description": "Invalid file name", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
    summary="Serve an uploaded image",
)
async def serve_upload(filename: str) -> FileResponse:
    """Media type is guessed from the stored extension."""
    path = user_service.asset_path(filename)
    return FileResponse(path=str(path), headers={"Cache-Control": "public, max-age=86400"})
