"""
Userbook Backend - Asset Service Tests
======================================

What:  Tests for AssetService naming, writing, limits and failure cleanup.
How:   Real files under tmp_path; the millisecond clock and aiofiles.os.replace
       are patched where a test needs a collision or a failing disk.
"""

import asyncio
import re
from unittest.mock import patch

import pytest

from userbook.exceptions import AssetWriteError, NotFoundError, ValidationError
from userbook.services.asset_service import AssetService

NAME_PATTERN = re.compile(r"^userImage-\d{13}\.png$")


class _StallingUpload:
    """Delivers one chunk, then waits until the task is cancelled."""

    def __init__(self):
        self.first_chunk_sent = asyncio.Event()

    async def read(self, size: int = -1) -> bytes:
        if not self.first_chunk_sent.is_set():
            self.first_chunk_sent.set()
            return b"0123456789"
        await asyncio.sleep(3600)
        return b""


class TestNaming:
    """Extension handling and generated names."""

    @pytest.mark.parametrize(
        "original, expected",
        [
            ("photo.png", ".png"),
            ("archive.tar.gz", ".gz"),
            ("Portrait.JPG", ".JPG"),
            ("noextension", ""),
            ("", ""),
            ("weird.p ng", ""),
            ("../../etc/passwd", ""),
        ],
    )
    def test_extension_for(self, original, expected):
        assert AssetService.extension_for(original) == expected

    @pytest.mark.asyncio
    async def test_store_returns_tagged_timestamp_name(self, asset_service, make_upload, sample_image_bytes):
        filename = await asset_service.store(make_upload(sample_image_bytes), "photo.png")

        assert NAME_PATTERN.match(filename)
        assert "/" not in filename

    @pytest.mark.asyncio
    async def test_custom_field_tag(self, tmp_path, make_upload):
        service = AssetService(upload_root=str(tmp_path / "up"), field_tag="avatar")

        filename = await service.store(make_upload(b"abc"), "a.jpg")

        assert filename.startswith("avatar-")
        assert filename.endswith(".jpg")

    @pytest.mark.asyncio
    async def test_collision_retries_with_new_timestamp(self, asset_service, make_upload):
        (asset_service.upload_root / "userImage-1000.png").write_bytes(b"existing")

        with patch(
            "userbook.services.asset_service._timestamp_ms",
            side_effect=[1000, 1000, 1001],
        ):
            filename = await asset_service.store(make_upload(b"new"), "x.png")

        assert filename == "userImage-1001.png"
        assert (asset_service.upload_root / "userImage-1000.png").read_bytes() == b"existing"
        assert (asset_service.upload_root / filename).read_bytes() == b"new"

    @pytest.mark.asyncio
    async def test_collision_exhausts_attempts(self, tmp_path, make_upload):
        service = AssetService(upload_root=str(tmp_path / "up"), name_attempts=2)
        (service.upload_root / "userImage-1000.png").write_bytes(b"existing")

        with patch("userbook.services.asset_service._timestamp_ms", return_value=1000):
            with pytest.raises(AssetWriteError):
                await service.store(make_upload(b"new"), "x.png")

        assert [p.name for p in service.upload_root.iterdir()] == ["userImage-1000.png"]


class TestWrite:
    """Content is written completely or not at all."""

    @pytest.mark.asyncio
    async def test_full_content_written(self, asset_service, make_upload):
        payload = bytes(range(256)) * 1024  # 256KB, several chunks

        filename = await asset_service.store(make_upload(payload), "big.png")

        assert (asset_service.upload_root / filename).read_bytes() == payload

    @pytest.mark.asyncio
    async def test_no_part_files_left(self, asset_service, make_upload, sample_image_bytes):
        filename = await asset_service.store(make_upload(sample_image_bytes), "photo.png")

        assert [p.name for p in asset_service.upload_root.iterdir()] == [filename]

    @pytest.mark.asyncio
    async def test_oversized_upload_rejected_and_cleaned(self, tmp_path, make_upload):
        service = AssetService(upload_root=str(tmp_path / "up"), max_file_size=1024)

        with pytest.raises(ValidationError, match="exceeds maximum"):
            await service.store(make_upload(b"x" * 1025), "big.png")

        assert list(service.upload_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_upload_at_limit_accepted(self, tmp_path, make_upload):
        service = AssetService(upload_root=str(tmp_path / "up"), max_file_size=1024)

        filename = await service.store(make_upload(b"x" * 1024), "edge.png")

        assert (service.upload_root / filename).stat().st_size == 1024

    @pytest.mark.asyncio
    async def test_write_failure_raises_and_leaves_nothing(self, asset_service, make_upload):
        with patch("aiofiles.os.replace", side_effect=OSError("No space left on device")):
            with pytest.raises(AssetWriteError):
                await asset_service.store(make_upload(b"data"), "photo.png")

        assert list(asset_service.upload_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_cancelled_upload_leaves_nothing(self, asset_service):
        upload = _StallingUpload()
        task = asyncio.create_task(asset_service.store(upload, "photo.png"))
        await asyncio.wait_for(upload.first_chunk_sent.wait(), timeout=5)

        in_flight = [p.name for p in asset_service.upload_root.iterdir() if not p.name.startswith(".")]
        assert len(in_flight) == 1
        with pytest.raises(NotFoundError):
            asset_service.resolve(in_flight[0])

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert list(asset_service.upload_root.iterdir()) == []


class TestResolveAndDiscard:
    """Serving and rollback helpers."""

    @pytest.mark.asyncio
    async def test_resolve_stored_asset(self, asset_service, make_upload):
        filename = await asset_service.store(make_upload(b"img"), "a.png")

        assert asset_service.resolve(filename).read_bytes() == b"img"

    @pytest.mark.parametrize("name", ["../secret.txt", "sub/../../x.png", ".userImage-1.png.part"])
    def test_resolve_rejects_paths_outside_upload_root(self, asset_service, name):
        with pytest.raises(ValidationError):
            asset_service.resolve(name)

    def test_resolve_missing(self, asset_service):
        with pytest.raises(NotFoundError):
            asset_service.resolve("userImage-1.png")

    @pytest.mark.asyncio
    async def test_discard_removes_asset(self, asset_service, make_upload):
        filename = await asset_service.store(make_upload(b"img"), "a.png")

        await asset_service.discard(filename)

        assert not (asset_service.upload_root / filename).exists()

    @pytest.mark.asyncio
    async def test_discard_missing_is_quiet(self, asset_service):
        await asset_service.discard("userImage-404.png")
