"""
Core persistence service for pastes.

A paste is either *flat* (body in ``content``, no blocks) or *blocked*
(``is_jupyter_style`` set, empty ``content``, one or more blocks ordered
``0..N-1``). Every mutating operation runs inside one unit of work so a
representation switch is never observed half-done.
"""
import dataclasses
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from fastapi import Depends, UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pasteshare.shared_lib.crypto import hash_password, verify_password
from ..config import settings
from ..db import get_db
from ..exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PasteShareError,
    StorageError,
    ValidationError,
)
from ..models import Block, File, Paste
from .block_payload import BlockDraft, BlocksPayload, build_drafts, normalize_blocks, parse_blocks
from .custom_url_validator import CustomUrlValidator
from .file_storage import FileStorage, StoredFile, get_file_storage
from .logging_service import PasteLoggerAdapter

logger = PasteLoggerAdapter(logging.getLogger(__name__))

PASTE_NOT_FOUND = "Paste not found"


class PasteStore:
    """Create, read, update and delete pastes with their blocks and files."""

    def __init__(self, db: AsyncSession, file_storage: Optional[FileStorage] = None):
        self.db = db
        self.file_storage = file_storage
        self.url_validator = CustomUrlValidator(db)

    # -- transactions ---------------------------------------------------

    @asynccontextmanager
    async def _unit_of_work(self, action: str) -> AsyncIterator[None]:
        """
        Commit every write made inside the block, or roll all of them back.

        Domain errors propagate unchanged; anything else becomes a
        StorageError carrying ``Server error <action>``.
        """
        try:
            yield
            await self.db.commit()
        except PasteShareError:
            await self._rollback(action)
            raise
        except Exception as e:
            logger.error(f"Transaction failed while {action}: {type(e).__name__}: {e}")
            await self._rollback(action)
            raise StorageError(f"Server error {action}", cause=e) from e

    async def _rollback(self, action: str) -> None:
        try:
            await self.db.rollback()
        except Exception as e:
            # The original error is the one reported to the caller.
            logger.error(f"Rollback failed while {action}: {type(e).__name__}: {e}")

    # -- lookups --------------------------------------------------------

    async def _find_paste(
        self,
        identifier: str,
        with_children: bool = False,
        for_update: bool = False,
    ) -> Optional[Paste]:
        try:
            paste_id = uuid.UUID(identifier)
        except ValueError:
            paste_id = None

        if paste_id is None:
            clause = Paste.custom_url == identifier
        else:
            clause = sa.or_(Paste.id == paste_id, Paste.custom_url == identifier)

        query = sa.select(Paste).where(clause)
        if with_children:
            query = query.options(selectinload(Paste.blocks), selectinload(Paste.files))
        if for_update:
            query = query.with_for_update()
        if with_children or for_update:
            # Refresh the row only when the caller reloads it; a plain lookup
            # must not discard children already loaded on this instance.
            query = query.execution_options(populate_existing=True)
        result = await self.db.scalars(query)
        matches = result.all()
        if not matches:
            return None
        # A match on id wins over a custom URL that happens to look like a UUID.
        for paste in matches:
            if paste.id == paste_id:
                return paste
        return matches[0]

    async def _get_live_paste(self, identifier: str, **kwargs) -> Paste:
        paste = await self._find_paste(identifier, **kwargs)
        if paste is None or paste.is_expired():
            raise NotFoundError(PASTE_NOT_FOUND)
        return paste

    async def _reload(self, paste_id: uuid.UUID) -> Paste:
        paste = await self.db.scalar(
            sa.select(Paste)
            .where(Paste.id == paste_id)
            .options(selectinload(Paste.blocks), selectinload(Paste.files))
            .execution_options(populate_existing=True)
        )
        if paste is None:
            raise NotFoundError(PASTE_NOT_FOUND)
        return paste

    def _check_password(self, paste: Paste, password: Optional[str]) -> None:
        if not paste.is_password_protected:
            return

        paste_info = {
            "pasteInfo": {
                "id": str(paste.id),
                "title": paste.title,
                "isPasswordProtected": True,
                "customUrl": paste.custom_url,
            }
        }
        if not password:
            raise ForbiddenError("This paste is password protected", extra=paste_info)
        if not verify_password(password, paste.password_hash):
            raise ForbiddenError("Invalid password", extra=paste_info)

    # -- blocks ---------------------------------------------------------

    async def _claim_block_ids(self, drafts: List[BlockDraft]) -> List[BlockDraft]:
        """Mint new ids for client-supplied ids that another paste already uses."""
        if not drafts:
            return drafts
        taken = set(
            await self.db.scalars(
                sa.select(Block.id).where(Block.id.in_([d.id for d in drafts]))
            )
        )
        if not taken:
            return drafts
        return [
            dataclasses.replace(d, id=uuid.uuid4()) if d.id in taken else d
            for d in drafts
        ]

    async def _replace_blocks(self, paste: Paste, drafts: List[BlockDraft]) -> None:
        await self.db.execute(sa.delete(Block).where(Block.paste_id == paste.id))
        drafts = await self._claim_block_ids(drafts)
        self.db.add_all(
            Block(
                id=draft.id,
                paste_id=paste.id,
                content=draft.content,
                language=draft.language,
                order=draft.order,
            )
            for draft in drafts
        )
        await self.db.flush()

    # -- create ---------------------------------------------------------

    async def create_paste(
        self,
        content: Optional[str] = None,
        title: Optional[str] = None,
        expires_in: Optional[int] = None,
        is_private: bool = False,
        is_editable: bool = False,
        custom_url: Optional[str] = None,
        password: Optional[str] = None,
        is_jupyter_style: bool = False,
        blocks: BlocksPayload = None,
        files: Sequence[UploadFile] = (),
    ) -> Paste:
        """
        Create a flat or blocked paste with its blocks and file records.

        Files are written to disk first and removed again if the database
        transaction fails.
        """
        drafts: List[BlockDraft] = []
        if is_jupyter_style:
            if blocks is None or (isinstance(blocks, str) and not blocks.strip()):
                raise ValidationError("Blocks data is required for Jupyter-style pastes")
            drafts = normalize_blocks(blocks)
            if not drafts:
                raise ValidationError("At least one valid block is required for Jupyter-style pastes")
        elif not content or not content.strip():
            raise ValidationError("Content is required")

        custom_url = custom_url.strip() if custom_url else None
        if custom_url:
            # Format is checked before any file is written.
            error = self.url_validator.check_format(custom_url)
            if error:
                raise ValidationError(error)

        expires_at = None
        if expires_in is not None and expires_in > 0:
            expires_at = datetime.utcnow() + timedelta(seconds=expires_in)

        stored_files: List[StoredFile] = []
        if files:
            if self.file_storage is None:
                raise StorageError("Server error creating paste: file storage is not configured")
            stored_files = await self.file_storage.save_files(files)

        paste = Paste(
            title=title or settings.DEFAULT_PASTE_TITLE,
            content="" if is_jupyter_style else content,
            is_jupyter_style=is_jupyter_style,
            expires_at=expires_at,
            is_private=is_private,
            is_editable=is_editable,
            custom_url=custom_url,
            password_hash=hash_password(password) if password else None,
        )

        try:
            async with self._unit_of_work("creating paste"):
                if custom_url:
                    await self.url_validator.validate(custom_url)

                self.db.add(paste)
                try:
                    await self.db.flush()
                except IntegrityError as e:
                    # Lost a race for the same custom URL.
                    raise ConflictError("Custom URL is already taken") from e

                if drafts:
                    drafts = await self._claim_block_ids(drafts)
                    self.db.add_all(
                        Block(
                            id=draft.id,
                            paste_id=paste.id,
                            content=draft.content,
                            language=draft.language,
                            order=draft.order,
                        )
                        for draft in drafts
                    )

                self.db.add_all(
                    File(
                        paste_id=paste.id,
                        filename=f.filename,
                        original_name=f.original_name,
                        mime_type=f.mime_type,
                        size=f.size,
                        storage_path=f.storage_path,
                    )
                    for f in stored_files
                )
        except PasteShareError:
            if stored_files:
                await self.file_storage.remove_files(f.storage_path for f in stored_files)
            raise

        logger.log_paste_event(
            logging.INFO, "paste_created", paste_id=str(paste.id),
            message=f"Paste {paste.id} created",
            jupyter=is_jupyter_style, blocks=len(drafts), files=len(stored_files),
        )
        return await self._reload(paste.id)

    # -- read -----------------------------------------------------------

    async def get_paste(self, identifier: str, password: Optional[str] = None) -> Paste:
        """
        Resolve a paste by id or custom URL and count the view.

        Password-protected pastes require the right password; nothing of the
        body is returned otherwise.
        """
        paste = await self._get_live_paste(identifier, with_children=True)
        self._check_password(paste, password)

        async with self._unit_of_work("retrieving paste"):
            await self.db.execute(
                sa.update(Paste)
                .where(Paste.id == paste.id)
                .values(views=Paste.views + 1)
                .execution_options(synchronize_session=False)
            )
        await self.db.refresh(paste, attribute_names=["views"])
        return paste

    async def get_raw_content(self, identifier: str, password: Optional[str] = None) -> str:
        paste = await self._get_live_paste(identifier)
        self._check_password(paste, password)
        if paste.is_jupyter_style:
            raise ValidationError("Raw view is not available for Jupyter-style pastes")
        return paste.content

    async def verify_password(self, identifier: str, password: Optional[str]) -> None:
        """Raise unless ``password`` unlocks the paste."""
        if not password:
            raise ValidationError("Password is required")

        paste = await self._get_live_paste(identifier)
        if not paste.is_password_protected:
            raise ValidationError("This paste is not password protected")
        if not verify_password(password, paste.password_hash):
            raise ForbiddenError("Invalid password")

    async def list_recent(self, limit: int = None, page: int = 1) -> List[Paste]:
        """Public, unexpired pastes, newest first."""
        limit = max(1, min(limit or settings.RECENT_PASTES_LIMIT, settings.MAX_RECENT_PASTES_LIMIT))
        page = max(1, page)
        now = datetime.utcnow()
        result = await self.db.scalars(
            sa.select(Paste)
            .where(
                Paste.is_private == False,
                sa.or_(Paste.expires_at.is_(None), Paste.expires_at > now),
            )
            .options(selectinload(Paste.blocks))
            .order_by(Paste.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.all())

    async def get_file(self, identifier: str, file_id: str, password: Optional[str] = None) -> File:
        paste = await self._get_live_paste(identifier)
        self._check_password(paste, password)

        try:
            file_uuid = uuid.UUID(file_id)
        except ValueError:
            raise NotFoundError("File not found")

        file = await self.db.scalar(
            sa.select(File).where(File.id == file_uuid, File.paste_id == paste.id)
        )
        if file is None:
            raise NotFoundError("File not found")
        return file

    async def check_custom_url(self, custom_url: str) -> Tuple[bool, Optional[str]]:
        return await self.url_validator.check_availability(custom_url)

    # -- update ---------------------------------------------------------

    async def update_paste(
        self,
        identifier: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        blocks: BlocksPayload = None,
    ) -> Paste:
        """
        Apply a partial update and return the re-read paste.

        A non-empty ``blocks`` payload replaces the whole block set and turns
        the paste into a blocked one; otherwise ``content`` replaces the flat
        body and drops any blocks. ``title`` is applied in either case.
        """
        async with self._unit_of_work("updating paste"):
            paste = await self._find_paste(identifier, for_update=True)
            if paste is None:
                raise NotFoundError(PASTE_NOT_FOUND)
            if not paste.is_editable:
                raise ForbiddenError("This paste is not editable")
            if paste.is_expired():
                raise NotFoundError(PASTE_NOT_FOUND)

            parsed_blocks = parse_blocks(blocks)
            drafts: List[BlockDraft] = []
            now = datetime.utcnow()

            if title is not None:
                paste.title = title

            if parsed_blocks:
                drafts = build_drafts(parsed_blocks)
                if not drafts:
                    raise ValidationError("No content to save")
                await self._replace_blocks(paste, drafts)
                paste.is_jupyter_style = True
                paste.content = ""
                paste.updated_at = now
            elif content is not None:
                await self.db.execute(sa.delete(Block).where(Block.paste_id == paste.id))
                paste.is_jupyter_style = False
                paste.content = content
                paste.updated_at = now

            paste_id = paste.id
            mode = "blocks" if drafts else ("content" if content is not None else "title")

        logger.log_paste_event(
            logging.INFO, "paste_updated", paste_id=str(paste_id),
            message=f"Paste {paste_id} updated", mode=mode, blocks=len(drafts),
        )
        return await self._reload(paste_id)

    # -- delete ---------------------------------------------------------

    async def delete_paste(self, identifier: str) -> None:
        """Delete the paste, its blocks and file rows, then its stored files."""
        async with self._unit_of_work("deleting paste"):
            paste = await self._get_live_paste(identifier, with_children=True)
            paths = [f.storage_path for f in paste.files]
            paste_id = paste.id
            await self.db.delete(paste)

        if paths:
            if self.file_storage is None:
                logger.warning(f"No file storage configured; {len(paths)} files of paste {paste_id} left on disk")
            else:
                removed = await self.file_storage.remove_files(paths)
                if removed < len(paths):
                    logger.warning(f"Removed {removed}/{len(paths)} stored files of paste {paste_id}")
        logger.log_paste_event(
            logging.INFO, "paste_deleted", paste_id=str(paste_id),
            message=f"Paste {paste_id} deleted", files=len(paths),
        )


# Dependency for FastAPI
def get_paste_store(
    db: AsyncSession = Depends(get_db),
    file_storage: FileStorage = Depends(get_file_storage),
) -> PasteStore:
    return PasteStore(db, file_storage)
