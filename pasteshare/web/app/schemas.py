"""
Request models and response serializers for the pastes API.

Responses use camelCase keys.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from .config import settings
from .models import Block, File, Paste


# Request Models
class PasteUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    blocks: Optional[Union[str, List[Any], Dict[str, Any]]] = None


class VerifyPasswordRequest(BaseModel):
    password: Optional[str] = None


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() + "Z"


def serialize_block(block: Block) -> Dict[str, Any]:
    return {
        "id": str(block.id),
        "content": block.content,
        "language": block.language,
        "order": block.order,
    }


def serialize_file(paste: Paste, file: File) -> Dict[str, Any]:
    return {
        "id": str(file.id),
        "filename": file.original_name,
        "mimeType": file.mime_type,
        "size": file.size,
        "url": f"/api/pastes/{paste.id}/files/{file.id}",
    }


def serialize_paste(paste: Paste, include_files: bool = True) -> Dict[str, Any]:
    """Full paste representation, as returned by read, create and update."""
    blocks = [serialize_block(b) for b in sorted(paste.blocks, key=lambda b: b.order)]
    is_jupyter_style = bool(paste.is_jupyter_style or blocks)
    data = {
        "id": str(paste.id),
        "title": paste.title,
        "content": "" if is_jupyter_style else paste.content,
        "expiresAt": _isoformat(paste.expires_at),
        "isPrivate": paste.is_private,
        "isEditable": paste.is_editable,
        "customUrl": paste.custom_url,
        "createdAt": _isoformat(paste.created_at),
        "updatedAt": _isoformat(paste.updated_at),
        "views": paste.views,
        "isJupyterStyle": is_jupyter_style,
        "blocks": blocks,
        "canEdit": paste.is_editable,
        "isPasswordProtected": paste.is_password_protected,
    }
    if include_files:
        data["files"] = [serialize_file(paste, f) for f in paste.files]
    return data


def _preview_text(paste: Paste) -> str:
    if paste.is_password_protected:
        return ""
    if paste.blocks:
        text = paste.blocks[0].content or ""
    else:
        text = paste.content or ""
    if len(text) > settings.PREVIEW_LENGTH:
        text = f"{text[:settings.PREVIEW_LENGTH]}..."
    return text


def serialize_preview(paste: Paste) -> Dict[str, Any]:
    """Short listing entry for the recent pastes feed."""
    return {
        "id": str(paste.id),
        "title": paste.title,
        "content": _preview_text(paste),
        "createdAt": _isoformat(paste.created_at),
        "expiresAt": _isoformat(paste.expires_at),
        "views": paste.views,
        "customUrl": paste.custom_url,
        "isJupyterStyle": bool(paste.is_jupyter_style or paste.blocks),
        "isPasswordProtected": paste.is_password_protected,
    }
