"""
Userbook Backend - Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the test suite.
How:   Every test gets its own document and upload directory under tmp_path;
       nothing touches ./data or ./uploads.

Fixtures (function-scoped):
    ├── record_store: initialized RecordStore on an empty document
    ├── asset_service: AssetService on an empty upload directory
    ├── make_upload: builds Starlette UploadFile objects from bytes
    ├── sample_image_bytes: minimal PNG
    ├── sample_fields: UserFields for "Ada Lovelace"
    └── test_client: HTTPX AsyncClient wired to the app with the stores above
"""

import os
import tempfile
from io import BytesIO

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings BEFORE any userbook import creates the singletons
_scratch = tempfile.mkdtemp(prefix="userbook_test_")
os.environ["DATA_FILE"] = os.path.join(_scratch, "users.json")
os.environ["UPLOAD_ROOT"] = os.path.join(_scratch, "uploads")
os.environ["LOG_LEVEL"] = "WARNING"

from starlette.datastructures import UploadFile  # noqa: E402

from userbook.record_store import RecordStore  # noqa: E402
from userbook.schemas.user import UserFields  # noqa: E402
from userbook.services.asset_service import AssetService  # noqa: E402


@pytest_asyncio.fixture
async def record_store(tmp_path):
    """A RecordStore backed by a fresh empty document."""
    store = RecordStore(data_file=str(tmp_path / "data" / "users.json"))
    await store.initialize()
    return store


@pytest.fixture
def asset_service(tmp_path):
    """An AssetService writing into a fresh upload directory."""
    return AssetService(upload_root=str(tmp_path / "uploads"))


@pytest.fixture
def make_upload():
    """Factory for in-memory uploads: make_upload(b"...", "photo.png")."""
    def _make(content: bytes, filename: str = "photo.png") -> UploadFile:
        return UploadFile(file=BytesIO(content), filename=filename, size=len(content))
    return _make


@pytest.fixture
def sample_image_bytes():
    """PNG signature + IHDR chunk header; enough to look like an image."""
    return (
        b"\x89PNG\r\n\x1a\n"
        b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"
    )


@pytest.fixture
def sample_fields():
    return UserFields(
        first_name="Ada",
        last_name="Lovelace",
        username="ada",
        birthday="1815-12-10",
        occupation="Mathematician",
    )


@pytest_asyncio.fixture
async def test_client(record_store, asset_service, monkeypatch):
    """
    HTTPX AsyncClient talking to the app through ASGITransport.

    The shared UserService is pointed at this test's stores. ASGITransport
    does not run the lifespan; record_store is already initialized.
    """
    from userbook.main import app
    from userbook.services.user_service import user_service

    monkeypatch.setattr(user_service, "records", record_store)
    monkeypatch.setattr(user_service, "assets", asset_service)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
