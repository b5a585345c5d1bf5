import os
import tempfile

# Settings are read at import time; point them at test values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="pasteshare-uploads-"))
os.environ.setdefault("EXPIRED_PASTE_SWEEP_SECONDS", "0")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import io
import uuid

import pytest
import pytest_asyncio
import sqlalchemy as sa
from fastapi import UploadFile
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import selectinload
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers

from pasteshare.web.app.db import Base, get_db
from pasteshare.web.app.main import app
from pasteshare.web.app.models import Paste
from pasteshare.web.app.services.file_storage import FileStorage, get_file_storage
from pasteshare.web.app.services.file_validator import FileValidator
from pasteshare.web.app.services.paste_store import PasteStore


@pytest_asyncio.fixture(scope="function")
async def engine():
    """
    A fresh in-memory database per test. StaticPool keeps every session on
    the one connection so they all see the same schema and rows.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def file_storage(upload_dir):
    return FileStorage(FileValidator(), storage_path=str(upload_dir))


@pytest.fixture
def paste_store(db_session, file_storage):
    return PasteStore(db_session, file_storage)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, file_storage):
    """
    httpx client bound to the app, with the database and file storage
    dependencies pointed at the test fixtures.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_storage] = lambda: file_storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def fetch_paste(session_factory):
    """Load a paste with its children in a session of its own."""
    async def _fetch(paste_id):
        if isinstance(paste_id, str):
            paste_id = uuid.UUID(paste_id)
        async with session_factory() as session:
            return await session.scalar(
                sa.select(Paste)
                .where(Paste.id == paste_id)
                .options(selectinload(Paste.blocks), selectinload(Paste.files))
            )
    return _fetch


@pytest.fixture
def make_upload():
    def _make(name="notes.txt", data=b"hello world", content_type="text/plain", size=None):
        return UploadFile(
            file=io.BytesIO(data),
            filename=name,
            size=size,
            headers=Headers({"content-type": content_type}),
        )
    return _make
