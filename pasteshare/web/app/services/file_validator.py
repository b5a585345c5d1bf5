from typing import List, Sequence

from fastapi import UploadFile

from ..config import settings
from ..exceptions import PayloadTooLargeError, UnsupportedMediaTypeError

class FileValidator:
    def __init__(
        self,
        max_size_bytes: int = settings.MAX_FILE_SIZE,
        max_files: int = settings.MAX_FILES_PER_PASTE,
        allowed_content_types: List[str] = None,
    ):
        self.max_size_bytes = max_size_bytes
        self.max_files = max_files
        self.allowed_content_types = allowed_content_types or settings.allowed_file_types

    @property
    def max_size_mb(self) -> int:
        return self.max_size_bytes // (1024 ** 2)

    def validate_count(self, files: Sequence[UploadFile]):
        if len(files) > self.max_files:
            raise PayloadTooLargeError(f"Too many files. Maximum is {self.max_files} files.")

    def validate_size(self, size: int):
        if size > self.max_size_bytes:
            raise PayloadTooLargeError(f"File too large. Maximum size is {self.max_size_mb}MB.")

    def validate(self, file: UploadFile):
        # Size can be unknown until the body is read; FileStorage re-checks it.
        if file.size is not None:
            self.validate_size(file.size)

        if file.content_type not in self.allowed_content_types:
            raise UnsupportedMediaTypeError(f"File type not allowed: {file.content_type}")

# Dependency for FastAPI
def get_file_validator() -> FileValidator:
    return FileValidator()
