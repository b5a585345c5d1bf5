"""
Service for purging expired pastes.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
import sqlalchemy as sa

from ..models import Paste
from .file_storage import FileStorage

logger = logging.getLogger(__name__)

class ExpirationManager:
    """
    Handles the cleanup of expired content.
    """

    def __init__(self, db: AsyncSession, file_storage: Optional[FileStorage] = None):
        self.db = db
        self.file_storage = file_storage

    async def cleanup_expired_pastes(self, now: datetime = None) -> int:
        """
        Deletes expired pastes together with their blocks and files.

        Stored files are removed after the commit; a file that cannot be
        removed is logged and left behind.
        """
        now = now or datetime.utcnow()
        expired_pastes = (await self.db.scalars(
            sa.select(Paste)
            .where(Paste.expires_at.is_not(None), Paste.expires_at <= now)
            .options(selectinload(Paste.blocks), selectinload(Paste.files))
        )).all()

        if not expired_pastes:
            return 0

        paths = []
        for paste in expired_pastes:
            paths.extend(f.storage_path for f in paste.files)
            await self.db.delete(paste)

        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if paths and self.file_storage is not None:
            await self.file_storage.remove_files(paths)

        logger.info(f"Purged {len(expired_pastes)} expired pastes")
        return len(expired_pastes)

async def run_expiration_sweeper(
    session_factory: Callable[[], AsyncSession],
    file_storage: FileStorage,
    interval_seconds: int,
):
    """Purge expired pastes every ``interval_seconds`` until cancelled."""
    logger.info(f"Starting expired paste sweeper (every {interval_seconds}s)")
    while True:
        try:
            async with session_factory() as session:
                await ExpirationManager(session, file_storage).cleanup_expired_pastes()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in expired paste sweeper: {type(e).__name__}: {e}")
        await asyncio.sleep(interval_seconds)
