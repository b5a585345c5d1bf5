"""
Normalization of block payloads.

Clients send ``blocks`` either as a JSON-encoded string (multipart forms) or
as an already-parsed list of ``{id?, content, language?}`` objects (JSON
bodies). A single object is accepted as a one-element list. Everything is
turned into a list of :class:`BlockDraft` before any business logic runs.
"""
import json
import uuid
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError

DEFAULT_LANGUAGE = "text"

BlocksPayload = Union[str, Sequence[Any], dict, None]


class BlockInput(BaseModel):
    """One block descriptor as sent by the client."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    content: Optional[str] = None
    language: Optional[str] = None


_block_list_adapter = TypeAdapter(List[Optional[BlockInput]])


@dataclass(frozen=True)
class BlockDraft:
    """A block ready to be persisted: ``order`` is final and dense."""
    id: uuid.UUID
    content: str
    language: str
    order: int


def parse_block_id(value: Optional[str]) -> Optional[uuid.UUID]:
    """Return the client id as a UUID if it is a canonical UUID string."""
    if not isinstance(value, str):
        return None
    try:
        parsed = uuid.UUID(value)
    except ValueError:
        return None
    # Reject braces, urn: prefixes and hex without hyphens.
    if str(parsed) != value.lower():
        return None
    return parsed


def parse_blocks(blocks: BlocksPayload) -> List[BlockInput]:
    """
    Parse the raw payload into block descriptors, without filtering.

    Raises :class:`ValidationError` for unparseable JSON or a payload that is
    neither a list nor an object.
    """
    if blocks is None:
        return []

    if isinstance(blocks, str):
        if not blocks.strip():
            return []
        try:
            blocks = json.loads(blocks)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid blocks format: {e.msg}")

    if isinstance(blocks, dict):
        blocks = [blocks]

    if not isinstance(blocks, (list, tuple)):
        raise ValidationError("Invalid blocks format: blocks must be an array or object")

    try:
        parsed = _block_list_adapter.validate_python(list(blocks))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid blocks format: {e.errors()[0]['msg']}")

    # A null entry counts as a block with no content.
    return [block if block is not None else BlockInput() for block in parsed]


def build_drafts(blocks: Sequence[BlockInput]) -> List[BlockDraft]:
    """
    Keep only blocks with non-blank content and assign their final order.

    ``order`` is the position among kept blocks; the client's own ordering
    field, if any, is ignored.
    """
    drafts: List[BlockDraft] = []
    seen_ids = set()
    for block in blocks:
        content = block.content or ""
        if not content.strip():
            continue
        block_id = parse_block_id(block.id)
        if block_id is None or block_id in seen_ids:
            block_id = uuid.uuid4()
        seen_ids.add(block_id)
        drafts.append(
            BlockDraft(
                id=block_id,
                content=content,
                language=block.language or DEFAULT_LANGUAGE,
                order=len(drafts),
            )
        )
    return drafts


def normalize_blocks(blocks: BlocksPayload) -> List[BlockDraft]:
    """Parse ``blocks`` and return the drafts that would be persisted."""
    return build_drafts(parse_blocks(blocks))
