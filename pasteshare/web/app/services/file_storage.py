"""
Disk storage for files attached to pastes.
"""
import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Sequence
from uuid import uuid4

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from ..config import settings
from .file_validator import FileValidator, get_file_validator

logger = logging.getLogger(__name__)

@dataclass
class StoredFile:
    filename: str
    original_name: str
    mime_type: str
    size: int
    storage_path: str

class FileStorage:
    def __init__(self, file_validator: FileValidator, storage_path: str = settings.UPLOAD_DIR):
        self.file_validator = file_validator
        self.storage_path = os.path.abspath(storage_path)
        os.makedirs(self.storage_path, exist_ok=True)

    async def save_file(self, file: UploadFile) -> StoredFile:
        self.file_validator.validate(file)

        content = await file.read()
        self.file_validator.validate_size(len(content))

        # Generate a unique filename to prevent collisions
        original_name = os.path.basename(file.filename or "upload")
        file_extension = os.path.splitext(original_name)[1]
        unique_filename = f"{uuid4()}{file_extension}"
        file_path = os.path.join(self.storage_path, unique_filename)

        async with aiofiles.open(file_path, 'wb') as out_file:
            await out_file.write(content)

        logger.info(f"Stored file {original_name} ({len(content)} bytes) as {unique_filename}")
        return StoredFile(
            filename=unique_filename,
            original_name=original_name,
            mime_type=file.content_type,
            size=len(content),
            storage_path=file_path,
        )

    async def save_files(self, files: Sequence[UploadFile]) -> List[StoredFile]:
        """Validate and store all files; on any failure, remove what was written."""
        self.file_validator.validate_count(files)
        for file in files:
            self.file_validator.validate(file)

        stored: List[StoredFile] = []
        try:
            for file in files:
                stored.append(await self.save_file(file))
        except Exception:
            await self.remove_files(f.storage_path for f in stored)
            raise
        return stored

    async def remove_file(self, path: str) -> bool:
        """Best-effort removal; a missing file counts as removed."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error(f"Failed to remove stored file {path}: {e}")
            return False
        return True

    async def remove_files(self, paths: Iterable[str]) -> int:
        removed = 0
        for path in paths:
            if await self.remove_file(path):
                removed += 1
        return removed

# Dependency for FastAPI
def get_file_storage() -> FileStorage:
    return FileStorage(get_file_validator())
