"""
Userbook Backend - User Service
===============================

What:  Coordinates the image upload with the record write.
How:   Stores the upload (if any) through AssetService, then calls RecordStore
       with the resulting filename.
Who:   Called by the /api/users route handlers.

Orchestration Flow (create and update):
    ┌──────────┐    ┌──────────────┐    ┌──────────────┐
    │  Route   │───▶│ AssetService │───▶│ RecordStore  │
    │ (form +  │    │   .store()   │    │ create/update│
    │  file)   │    └──────────────┘    └──────────────┘
    └──────────┘

    Asset store fails   → nothing to undo, error propagates
    Record write fails  → the asset stored for this request is discarded,
                          error propagates (NotFoundError, StoreUnavailableError)
"""

import logging
from pathlib import Path
from typing import List, Optional

from userbook.exceptions import UserbookError
from userbook.record_store import RecordStore, record_store
from userbook.schemas.user import UserFields, UserRecord, UserUpdate
from userbook.services.asset_service import AssetService, asset_service

logger = logging.getLogger(__name__)


class UserService:
    """
    Business logic layer for user operations.

    Holds no per-request state; `records` and `assets` are swapped out in tests.
    """

    def __init__(
        self,
        records: Optional[RecordStore] = None,
        assets: Optional[AssetService] = None,
    ):
        self.records = records or record_store
        self.assets = assets or asset_service

    async def _store_upload(self, upload) -> Optional[str]:
        """
        Store an upload if one was actually sent.

        Browsers submit an empty file part with filename "" when the file
        input is left blank; that counts as no upload.
        """
        if upload is None or not getattr(upload, "filename", None):
            return None
        return await self.assets.store(upload, upload.filename)

    async def create_user(self, fields: UserFields, upload=None) -> UserRecord:
        """
        Create a user, attaching the uploaded image if one was sent.

        Raises:
            ValidationError / AssetWriteError: the upload could not be stored.
            StoreUnavailableError: the record document could not be read or written.
        """
        filename = await self._store_upload(upload)
        try:
            return await self.records.create(fields, image_ref=filename)
        except UserbookError as e:
            if filename:
                logger.warning("Create failed (%s); discarding asset %s", type(e).__name__, filename)
                await self.assets.discard(filename)
            raise

    async def update_user(self, user_id: int, changes: UserUpdate, upload=None) -> UserRecord:
        """
        Edit a user. A new upload replaces the record's image reference; the
        previous asset file is kept.

        Raises:
            NotFoundError: no user with this id.
            ValidationError / AssetWriteError: the upload could not be stored.
            StoreUnavailableError: the record document could not be read or written.
        """
        filename = await self._store_upload(upload)
        try:
            return await self.records.update(user_id, changes, image_ref=filename)
        except UserbookError as e:
            if filename:
                logger.warning(
                    "Update of user %d failed (%s); discarding asset %s",
                    user_id,
                    type(e).__name__,
                    filename,
                )
                await self.assets.discard(filename)
            raise

    async def list_users(self) -> List[UserRecord]:
        return await self.records.get_all()

    async def get_user(self, user_id: int) -> UserRecord:
        return await self.records.get_by_id(user_id)

    def asset_path(self, filename: str) -> Path:
        return self.assets.resolve(filename)


user_service = UserService()
