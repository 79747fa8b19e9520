"""
Userbook Backend - Asset Storage Service
========================================

What:  Persists uploaded images under generated names and resolves them back
       to paths for serving.
How:   Streams the upload to a hidden part file, then renames it over a name
       claimed with an exclusive create. Returns only the filename, which is
       what records store in `userImage`.
Who:   Called by UserService before the record write; by the /uploads route.

Naming:
    <field_tag>-<epoch milliseconds><original extension>
    e.g. userImage-1712345678901.png

    Two uploads in the same millisecond generate the same name. The exclusive
    create detects that and tenacity retries with a fresh timestamp.

Publish Sequence:
    1. claim   open(<name>, "xb")      FileExistsError → retry with new name
    2. stream  .<name>.part            chunked, size-limited
    3. publish os.replace(part, name)
    On any failure after step 1 both files are removed, so a filename is
    only ever returned for a fully written asset.

Retention:
    Assets are immutable once stored. An update that attaches a new image
    leaves the old file in place; nothing reclaims replaced assets.
"""

import logging
import re
import time
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from userbook.config import settings
from userbook.exceptions import AssetWriteError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# A suffix is kept only if it looks like an ordinary file extension
_EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


class AssetService:
    """
    Stores uploaded binary files in a flat upload directory.

    Directory Structure:
        uploads/
        ├── userImage-1712345678901.png
        ├── userImage-1712345680112.jpg
        └── .userImage-1712345690000.png.part   (only while a write is in flight)
    """

    def __init__(
        self,
        upload_root: Optional[str] = None,
        field_tag: Optional[str] = None,
        max_file_size: Optional[int] = None,
        name_attempts: Optional[int] = None,
    ):
        """
        Args:
            upload_root: Override settings.upload_root (used in tests).
            field_tag: Override settings.asset_field_tag.
            max_file_size: Override settings.max_file_size.
            name_attempts: Override settings.asset_name_attempts.
        """
        self.upload_root = Path(upload_root or settings.upload_root).resolve()
        self.field_tag = field_tag or settings.asset_field_tag
        self.max_file_size = max_file_size or settings.max_file_size
        self.name_attempts = name_attempts or settings.asset_name_attempts
        self.upload_root.mkdir(parents=True, exist_ok=True)
        logger.info("AssetService initialized with upload_root=%s", self.upload_root)

    @staticmethod
    def extension_for(original_name: str) -> str:
        """Original extension (with dot), or "" if there is none or it looks odd."""
        suffix = Path(original_name or "").suffix
        return suffix if _EXTENSION_PATTERN.match(suffix) else ""

    def _generate_filename(self, extension: str) -> str:
        return f"{self.field_tag}-{_timestamp_ms()}{extension}"

    async def _claim_name(self, extension: str) -> str:
        """
        Reserve a fresh asset name by creating an empty placeholder.

        Raises:
            AssetWriteError if every attempt collided or the directory is unwritable.
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(FileExistsError),
                stop=stop_after_attempt(self.name_attempts),
                wait=wait_fixed(0.002),
                before_sleep=before_sleep_log(logger, logging.DEBUG),
                reraise=True,
            ):
                with attempt:
                    filename = self._generate_filename(extension)
                    async with aiofiles.open(self.upload_root / filename, "xb"):
                        pass
        except FileExistsError as e:
            logger.error("No free asset name after %d attempts", self.name_attempts)
            raise AssetWriteError(context={"last_name": e.filename, "attempts": self.name_attempts})
        except OSError as e:
            logger.error("Failed to reserve asset name in %s: %s", self.upload_root, str(e))
            raise AssetWriteError(context={"path": str(self.upload_root), "os_error": str(e)})
        return filename

    async def _remove_quietly(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove %s: %s", path.name, str(e))

    async def store(self, stream, original_name: str) -> str:
        """
        Write an uploaded stream to the upload directory.

        Args:
            stream: Any object with `async read(size) -> bytes` (e.g. UploadFile).
            original_name: Client filename; only its extension is used.

        Returns:
            The generated filename (not a path).

        Raises:
            ValidationError: upload larger than max_file_size.
            AssetWriteError: I/O failure; nothing is left on disk.
        """
        filename = await self._claim_name(self.extension_for(original_name))
        target = self.upload_root / filename
        part = self.upload_root / f".{filename}.part"
        written = 0

        try:
            async with aiofiles.open(part, "wb") as f:
                while True:
                    chunk = await stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_file_size:
                        max_mb = self.max_file_size / (1024 * 1024)
                        raise ValidationError(
                            message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                            field="userImage",
                            context={"max_size": self.max_file_size},
                        )
                    await f.write(chunk)
            await aiofiles.os.replace(part, target)

        except OSError as e:
            logger.error("Failed to store asset %s: %s", filename, str(e))
            await self._remove_quietly(part)
            await self._remove_quietly(target)
            raise AssetWriteError(context={"path": str(target), "os_error": str(e)})
        except BaseException:
            # Size limit, a broken upload stream, or a cancelled request
            await self._remove_quietly(part)
            await self._remove_quietly(target)
            raise

        logger.info("Asset stored: %s (%d bytes)", filename, written)
        return filename

    def resolve(self, filename: str) -> Path:
        """
        Map a stored asset name to its path.

        Raises:
            ValidationError if the name would escape the upload directory.
            NotFoundError if no such asset exists.
        """
        path = (self.upload_root / filename).resolve()
        if path.parent != self.upload_root or path.name.startswith("."):
            raise ValidationError(message="Invalid file path", context={"requested": filename})
        # An in-flight upload has a claimed but still empty name
        if not path.is_file() or path.with_name(f".{path.name}.part").exists():
            raise NotFoundError(resource="file", resource_id=filename)
        return path

    async def discard(self, filename: str) -> None:
        """
        Remove an asset that was stored for a request whose record write failed.

        Best-effort: errors are logged, never raised.
        """
        await self._remove_quietly(self.upload_root / filename)
        logger.info("Discarded unreferenced asset: %s", filename)


asset_service = AssetService()
