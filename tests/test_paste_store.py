"""
Tests for creating, reading, listing and deleting pastes.
"""
import os
import uuid
from datetime import datetime, timedelta

import pytest
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from pasteshare.web.app.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from pasteshare.web.app.models import Paste
from pasteshare.web.app.schemas import serialize_paste
from pasteshare.web.app.services.paste_store import PasteStore


class TestCreatePaste:
    async def test_create_flat_paste(self, paste_store: PasteStore):
        paste = await paste_store.create_paste(content="hello", title="Greeting")

        assert paste.title == "Greeting"
        assert paste.content == "hello"
        assert paste.is_jupyter_style is False
        assert paste.blocks == []
        assert paste.views == 0
        assert paste.expires_at is None
        assert paste.password_hash is None

    async def test_default_title(self, paste_store: PasteStore):
        paste = await paste_store.create_paste(content="hello")
        assert paste.title == "Untitled Paste"

    @pytest.mark.parametrize("content", [None, "", "   \n"])
    async def test_flat_content_is_required(self, paste_store: PasteStore, content):
        with pytest.raises(ValidationError) as exc_info:
            await paste_store.create_paste(content=content)
        assert exc_info.value.message == "Content is required"

    async def test_create_blocked_paste(self, paste_store: PasteStore):
        paste = await paste_store.create_paste(
            is_jupyter_style=True,
            content="ignored",
            blocks='[{"content": "import os", "language": "python"}, {"content": " "}, {"content": "# Done"}]',
        )

        assert paste.is_jupyter_style is True
        assert paste.content == ""
        assert [(b.content, b.language, b.order) for b in paste.blocks] == [
            ("import os", "python", 0),
            ("# Done", "text", 1),
        ]

    async def test_blocked_paste_requires_blocks(self, paste_store: PasteStore):
        with pytest.raises(ValidationError) as exc_info:
            await paste_store.create_paste(is_jupyter_style=True)
        assert exc_info.value.message == "Blocks data is required for Jupyter-style pastes"

        with pytest.raises(ValidationError) as exc_info:
            await paste_store.create_paste(is_jupyter_style=True, blocks=[{"content": "  "}])
        assert exc_info.value.message == "At least one valid block is required for Jupyter-style pastes"

    async def test_expiry_and_flags(self, paste_store: PasteStore):
        before = datetime.utcnow()
        paste = await paste_store.create_paste(
            content="x", expires_in=3600, is_private=True, is_editable=True,
        )
        assert paste.is_private is True
        assert paste.is_editable is True
        assert before + timedelta(seconds=3590) < paste.expires_at < datetime.utcnow() + timedelta(seconds=3610)

    async def test_non_positive_expiry_never_expires(self, paste_store: PasteStore):
        paste = await paste_store.create_paste(content="x", expires_in=0)
        assert paste.expires_at is None

    async def test_password_is_hashed(self, paste_store: PasteStore):
        paste = await paste_store.create_paste(content="x", password="hunter2")
        assert paste.password_hash is not None
        assert paste.password_hash != "hunter2"
        assert paste.is_password_protected is True

    async def test_custom_url(self, paste_store: PasteStore):
        paste = await paste_store.create_paste(content="x", custom_url="my-notes")
        assert paste.custom_url == "my-notes"

        with pytest.raises(ConflictError):
            await paste_store.create_paste(content="y", custom_url="my-notes")
        with pytest.raises(ConflictError):
            await paste_store.create_paste(content="y", custom_url="recent")
        with pytest.raises(ValidationError):
            await paste_store.create_paste(content="y", custom_url="a b")

    async def test_create_with_files(self, paste_store: PasteStore, make_upload, upload_dir):
        paste = await paste_store.create_paste(
            content="see attached",
            files=[make_upload("a.txt", b"aaa"), make_upload("b.png", b"png", "image/png")],
        )

        assert sorted(f.original_name for f in paste.files) == ["a.txt", "b.png"]
        for f in paste.files:
            assert os.path.exists(f.storage_path)
        assert len(os.listdir(upload_dir)) == 2

    async def test_rejected_file_type_stores_nothing(self, paste_store: PasteStore, make_upload, db_session: AsyncSession, upload_dir):
        with pytest.raises(UnsupportedMediaTypeError):
            await paste_store.create_paste(
                content="x", files=[make_upload("evil.exe", b"MZ", "application/x-msdownload")],
            )
        assert os.listdir(upload_dir) == []
        assert await db_session.scalar(sa.select(sa.func.count(Paste.id))) == 0

    async def test_failed_transaction_removes_stored_files(self, paste_store: PasteStore, make_upload, upload_dir):
        await paste_store.create_paste(content="x", custom_url="taken")
        with pytest.raises(ConflictError):
            await paste_store.create_paste(content="y", custom_url="taken", files=[make_upload()])
        assert os.listdir(upload_dir) == []


class TestGetPaste:
    async def test_get_by_id_and_custom_url(self, paste_store: PasteStore):
        created = await paste_store.create_paste(content="x", custom_url="lookup-me")

        by_id = await paste_store.get_paste(str(created.id))
        by_url = await paste_store.get_paste("lookup-me")
        assert by_id.id == created.id
        assert by_url.id == created.id

    async def test_views_are_counted(self, paste_store: PasteStore, fetch_paste):
        created = await paste_store.create_paste(content="x")
        assert (await paste_store.get_paste(str(created.id))).views == 1
        assert (await paste_store.get_paste(str(created.id))).views == 2
        assert (await fetch_paste(created.id)).views == 2

    async def test_unknown_paste(self, paste_store: PasteStore):
        with pytest.raises(NotFoundError):
            await paste_store.get_paste(str(uuid.uuid4()))
        with pytest.raises(NotFoundError):
            await paste_store.get_paste("no-such-url")

    async def test_expired_paste_is_not_found(self, paste_store: PasteStore, db_session: AsyncSession):
        paste = Paste(content="old", expires_at=datetime.utcnow() - timedelta(minutes=1))
        db_session.add(paste)
        await db_session.commit()

        with pytest.raises(NotFoundError) as exc_info:
            await paste_store.get_paste(str(paste.id))
        assert exc_info.value.message == "Paste not found"

    async def test_password_protected(self, paste_store: PasteStore, fetch_paste):
        created = await paste_store.create_paste(content="secret", title="Locked", password="pw")

        with pytest.raises(ForbiddenError) as exc_info:
            await paste_store.get_paste(str(created.id))
        assert exc_info.value.message == "This paste is password protected"
        assert exc_info.value.extra["pasteInfo"] == {
            "id": str(created.id),
            "title": "Locked",
            "isPasswordProtected": True,
            "customUrl": None,
        }
        assert "content" not in exc_info.value.to_dict()

        with pytest.raises(ForbiddenError) as exc_info:
            await paste_store.get_paste(str(created.id), password="wrong")
        assert exc_info.value.message == "Invalid password"

        paste = await paste_store.get_paste(str(created.id), password="pw")
        assert paste.content == "secret"
        # Refused reads are not counted.
        assert (await fetch_paste(created.id)).views == 1

    async def test_raw_content(self, paste_store: PasteStore):
        flat = await paste_store.create_paste(content="plain text")
        blocked = await paste_store.create_paste(is_jupyter_style=True, blocks=[{"content": "a"}])

        assert await paste_store.get_raw_content(str(flat.id)) == "plain text"
        with pytest.raises(ValidationError):
            await paste_store.get_raw_content(str(blocked.id))

    async def test_verify_password(self, paste_store: PasteStore):
        locked = await paste_store.create_paste(content="x", password="pw")
        open_paste = await paste_store.create_paste(content="x")

        await paste_store.verify_password(str(locked.id), "pw")
        with pytest.raises(ForbiddenError):
            await paste_store.verify_password(str(locked.id), "nope")
        with pytest.raises(ValidationError) as exc_info:
            await paste_store.verify_password(str(locked.id), "")
        assert exc_info.value.message == "Password is required"
        with pytest.raises(ValidationError) as exc_info:
            await paste_store.verify_password(str(open_paste.id), "pw")
        assert exc_info.value.message == "This paste is not password protected"


class TestListRecent:
    async def test_only_public_unexpired_newest_first(self, paste_store: PasteStore, db_session: AsyncSession):
        now = datetime.utcnow()
        db_session.add_all([
            Paste(title="old", content="a", created_at=now - timedelta(hours=3)),
            Paste(title="new", content="b", created_at=now - timedelta(hours=1)),
            Paste(title="private", content="c", is_private=True, created_at=now),
            Paste(title="expired", content="d", created_at=now, expires_at=now - timedelta(seconds=1)),
            Paste(title="later", content="e", created_at=now - timedelta(hours=2), expires_at=now + timedelta(days=1)),
        ])
        await db_session.commit()

        pastes = await paste_store.list_recent()
        assert [p.title for p in pastes] == ["new", "later", "old"]

    async def test_limit_and_page(self, paste_store: PasteStore, db_session: AsyncSession):
        now = datetime.utcnow()
        db_session.add_all([
            Paste(title=f"p{i}", content="x", created_at=now - timedelta(minutes=i))
            for i in range(5)
        ])
        await db_session.commit()

        assert [p.title for p in await paste_store.list_recent(limit=2)] == ["p0", "p1"]
        assert [p.title for p in await paste_store.list_recent(limit=2, page=2)] == ["p2", "p3"]
        assert [p.title for p in await paste_store.list_recent(limit=2, page=3)] == ["p4"]


class TestFiles:
    async def test_get_file(self, paste_store: PasteStore, make_upload):
        paste = await paste_store.create_paste(content="x", files=[make_upload("a.txt", b"aaa")])
        file_id = str(paste.files[0].id)

        file = await paste_store.get_file(str(paste.id), file_id)
        assert file.original_name == "a.txt"

        with pytest.raises(NotFoundError):
            await paste_store.get_file(str(paste.id), "not-a-uuid")
        with pytest.raises(NotFoundError):
            await paste_store.get_file(str(paste.id), str(uuid.uuid4()))

    async def test_file_of_protected_paste_needs_password(self, paste_store: PasteStore, make_upload):
        paste = await paste_store.create_paste(content="x", password="pw", files=[make_upload()])
        file_id = str(paste.files[0].id)

        with pytest.raises(ForbiddenError):
            await paste_store.get_file(str(paste.id), file_id)
        assert (await paste_store.get_file(str(paste.id), file_id, password="pw")).id == paste.files[0].id

    async def test_lookups_keep_loaded_children(self, paste_store: PasteStore, make_upload):
        paste = await paste_store.create_paste(
            is_jupyter_style=True,
            password="pw",
            blocks=[{"content": "a"}, {"content": "b"}],
            files=[make_upload("a.txt", b"aaa")],
        )

        with pytest.raises(NotFoundError):
            await paste_store.get_file(str(paste.id), str(uuid.uuid4()), password="pw")
        with pytest.raises(ValidationError):
            await paste_store.get_raw_content(str(paste.id), password="pw")
        await paste_store.verify_password(str(paste.id), "pw")

        body = serialize_paste(paste)
        assert [b["content"] for b in body["blocks"]] == ["a", "b"]
        assert [f["filename"] for f in body["files"]] == ["a.txt"]


class TestDeletePaste:
    async def test_delete_removes_rows_and_files(self, paste_store: PasteStore, make_upload, fetch_paste, upload_dir):
        paste = await paste_store.create_paste(
            is_jupyter_style=True,
            blocks=[{"content": "a"}, {"content": "b"}],
            files=[make_upload()],
        )

        await paste_store.delete_paste(str(paste.id))

        assert await fetch_paste(paste.id) is None
        assert os.listdir(upload_dir) == []
        with pytest.raises(NotFoundError):
            await paste_store.get_paste(str(paste.id))

    async def test_delete_by_custom_url(self, paste_store: PasteStore, fetch_paste):
        paste = await paste_store.create_paste(content="x", custom_url="bye-bye")
        await paste_store.delete_paste("bye-bye")
        assert await fetch_paste(paste.id) is None

    async def test_delete_unknown(self, paste_store: PasteStore):
        with pytest.raises(NotFoundError):
            await paste_store.delete_paste(str(uuid.uuid4()))

    async def test_missing_stored_file_does_not_fail_delete(self, paste_store: PasteStore, make_upload, fetch_paste):
        paste = await paste_store.create_paste(content="x", files=[make_upload()])
        os.remove(paste.files[0].storage_path)

        await paste_store.delete_paste(str(paste.id))
        assert await fetch_paste(paste.id) is None
