"""
Custom URL validation for pastes.
Checks grammar, reserved routes and availability of a human-chosen alias.
"""
import re
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
import sqlalchemy as sa

from ..exceptions import ConflictError, ValidationError
from ..models import Paste


class CustomUrlValidator:
    """Validates custom URLs chosen for pastes."""

    MIN_LENGTH = 3
    MAX_LENGTH = 50
    PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

    # Paths the client and API already route; an alias must not shadow them.
    RESERVED_WORDS = frozenset({"recent", "api", "health", "raw", "check-url"})

    def __init__(self, db: AsyncSession):
        self.db = db

    def check_format(self, custom_url: str) -> Optional[str]:
        """Return an error message if the alias is malformed, else None."""
        if not self.PATTERN.match(custom_url):
            return "Custom URL can only contain letters, numbers, underscores and hyphens"

        if not self.MIN_LENGTH <= len(custom_url) <= self.MAX_LENGTH:
            return f"Custom URL must be between {self.MIN_LENGTH} and {self.MAX_LENGTH} characters"

        return None

    def is_reserved(self, custom_url: str) -> bool:
        return custom_url.lower() in self.RESERVED_WORDS

    async def is_taken(self, custom_url: str) -> bool:
        existing = await self.db.scalar(
            sa.select(Paste.id).where(Paste.custom_url == custom_url)
        )
        return existing is not None

    async def check_availability(self, custom_url: str) -> Tuple[bool, Optional[str]]:
        """
        Validate a custom URL without raising.
        Returns (is_available, reason).
        """
        error = self.check_format(custom_url)
        if error:
            return False, error

        if self.is_reserved(custom_url):
            return False, f'"{custom_url}" is a reserved route and cannot be used as a custom URL'

        if await self.is_taken(custom_url):
            return False, "Custom URL is already taken"

        return True, None

    async def validate(self, custom_url: str) -> None:
        """
        Raise if the custom URL cannot be used for a new paste.

        Malformed aliases raise ValidationError; reserved or taken ones
        raise ConflictError.
        """
        error = self.check_format(custom_url)
        if error:
            raise ValidationError(error)

        if self.is_reserved(custom_url):
            raise ConflictError(f'"{custom_url}" is a reserved route and cannot be used as a custom URL')

        if await self.is_taken(custom_url):
            raise ConflictError("Custom URL is already taken")
