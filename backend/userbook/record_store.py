"""
Userbook Backend - Flat-File Record Store
=========================================

What:  Owns the ordered collection of user records, persisted as one JSON
       document (a list of records, 2-space indented).
How:   Every operation loads the whole document. Mutations change the
       in-memory list and publish a complete replacement document.
Who:   Called by UserService; bootstrapped once from the app lifespan.

Concurrency Model:
    Writers (create, update) hold an asyncio.Lock for the whole
    read → modify → write cycle, so two concurrent creates can never read the
    same collection and lose one another's record.

    Readers (get_all, get_by_id) never take the lock. They are safe because
    a write never touches the live document in place:

        users.json            ← always a complete document
        .users.json.<hex>.tmp ← new document is written here first
        os.replace(tmp, users.json)   atomic on POSIX and Windows

    The lock serializes writers inside one process only. Run the service with
    a single worker process.

Identifier Policy:
    New ids are len(collection) + 1. Records are never deleted by this
    service, so under normal operation ids are exactly 1..N in insertion order.
    If len + 1 is already taken (the document was edited by hand) the store
    uses max(id) + 1 instead.
"""

import asyncio
import json
import logging
import uuid
from collections import Counter
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os
import pydantic
from pydantic import TypeAdapter

from userbook.config import settings
from userbook.exceptions import NotFoundError, StoreUnavailableError
from userbook.schemas.user import UserFields, UserRecord, UserUpdate

logger = logging.getLogger(__name__)

_collection_adapter = TypeAdapter(List[UserRecord])


class RecordStore:
    """
    Persistence layer for user records.

    Operations:
        initialize()          create an empty document if none exists
        get_all()             every record, in insertion order
        get_by_id(id)         first record with that id, or NotFoundError
        create(fields, ...)   append a record with a new id
        update(id, ...)       change supplied fields in place

    Failure Modes:
        Read, parse or write failure → StoreUnavailableError (no retry)
        Unknown id                   → NotFoundError (nothing written)
    """

    def __init__(self, data_file: Optional[str] = None):
        """
        Args:
            data_file: Override the document path (used in tests).
                       If None, uses settings.data_file.
        """
        self.data_file = Path(data_file or settings.data_file).resolve()
        self._write_lock = asyncio.Lock()

    # ── Bootstrap ─────────────────────────────────────────────────────────

    async def initialize(self) -> bool:
        """
        Create the parent directory and an empty collection if the document
        does not exist yet. An existing document is never touched, even if it
        is malformed.

        Returns:
            True if a new empty document was created.
        """
        async with self._write_lock:
            if await aiofiles.os.path.exists(self.data_file):
                logger.info("Record store found at %s", self.data_file)
                return False
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            await self._publish([])
            logger.info("Record store created at %s", self.data_file)
            return True

    # ── Read Path ─────────────────────────────────────────────────────────

    async def _load(self) -> List[UserRecord]:
        """
        Read and parse the whole document.

        Raises:
            StoreUnavailableError if the file is missing, unreadable, not UTF-8,
            not JSON (or nested too deeply to parse), or not a list of records.
        """
        try:
            async with aiofiles.open(self.data_file, "rb") as f:
                raw = await f.read()
        except OSError as e:
            logger.error("Failed to read record store %s: %s", self.data_file, str(e))
            raise StoreUnavailableError(
                context={"path": str(self.data_file), "os_error": str(e)},
            )

        try:
            records = _collection_adapter.validate_python(json.loads(raw.decode("utf-8")))
        except (ValueError, RecursionError, pydantic.ValidationError) as e:
            # UnicodeDecodeError and json.JSONDecodeError are ValueError subclasses
            logger.error("Record store %s is malformed: %s", self.data_file, type(e).__name__)
            raise StoreUnavailableError(
                context={"path": str(self.data_file), "parse_error": type(e).__name__},
            )

        duplicates = sorted(i for i, n in Counter(r.id for r in records).items() if n > 1)
        if duplicates:
            logger.warning(
                "Record store %s has duplicate ids %s; lookups use the first match",
                self.data_file,
                duplicates,
            )
        return records

    @staticmethod
    def _find(records: List[UserRecord], user_id: int) -> Optional[int]:
        """Index of the first record with this id, or None."""
        for index, record in enumerate(records):
            if record.id == user_id:
                return index
        return None

    async def get_all(self) -> List[UserRecord]:
        """Every record in insertion order."""
        return await self._load()

    async def get_by_id(self, user_id: int) -> UserRecord:
        """
        Raises:
            NotFoundError if no record has this id.
        """
        records = await self._load()
        index = self._find(records, user_id)
        if index is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return records[index]

    # ── Write Path ────────────────────────────────────────────────────────

    async def _publish(self, records: List[UserRecord]) -> None:
        """
        Replace the document with a serialization of `records`.

        The temp file lives next to the document so os.replace stays a
        same-filesystem rename. On failure the temp file is removed and the
        previous document is left as it was.
        """
        document = json.dumps(
            [record.model_dump(by_alias=True) for record in records],
            indent=2,
            ensure_ascii=False,
        )
        tmp_path = self.data_file.with_name(f".{self.data_file.name}.{uuid.uuid4().hex}.tmp")

        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(document)
            await aiofiles.os.replace(tmp_path, self.data_file)
        except OSError as e:
            logger.error("Failed to write record store %s: %s", self.data_file, str(e))
            try:
                await aiofiles.os.remove(tmp_path)
            except FileNotFoundError:
                pass
            raise StoreUnavailableError(
                context={"path": str(self.data_file), "os_error": str(e)},
            )

    @staticmethod
    def _next_id(records: List[UserRecord]) -> int:
        candidate = len(records) + 1
        if any(record.id == candidate for record in records):
            candidate = max(record.id for record in records) + 1
            logger.warning("Size-based id already taken; assigning %d instead", candidate)
        return candidate

    async def create(self, fields: UserFields, image_ref: Optional[str] = None) -> UserRecord:
        """
        Append a new record.

        Args:
            fields: The five text fields.
            image_ref: Filename returned by AssetService.store, if an image was uploaded.

        Returns:
            The stored record, with its assigned id.
        """
        async with self._write_lock:
            records = await self._load()
            record = UserRecord(
                id=self._next_id(records),
                user_image=image_ref,
                **fields.model_dump(),
            )
            records.append(record)
            await self._publish(records)

        logger.info("User %d created (image=%s)", record.id, image_ref or "none")
        return record

    async def update(
        self,
        user_id: int,
        changes: UserUpdate,
        image_ref: Optional[str] = None,
    ) -> UserRecord:
        """
        Overwrite the supplied fields of an existing record in place.

        `id` and position never change. `user_image` is repointed only when a
        new image_ref is given; there is no way to clear it.

        Raises:
            NotFoundError if no record has this id (the document is not rewritten).
        """
        async with self._write_lock:
            records = await self._load()
            index = self._find(records, user_id)
            if index is None:
                raise NotFoundError(resource="user", resource_id=str(user_id))

            values = changes.supplied()
            if image_ref:
                values["user_image"] = image_ref
            records[index] = records[index].model_copy(update=values)
            await self._publish(records)

        logger.info("User %d updated: %s", user_id, sorted(values) or "no changes")
        return records[index]


record_store = RecordStore()
