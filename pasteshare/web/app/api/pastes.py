"""
Pastes API Endpoints

Provides REST API endpoints for:
- Creating flat and Jupyter-style pastes with file attachments
- Reading pastes by id or custom URL, raw and password-protected
- Updating and deleting pastes
- Listing recent public pastes and checking custom URL availability
"""
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse, PlainTextResponse

from ..exceptions import NotFoundError
from ..schemas import (
    PasteUpdateRequest,
    VerifyPasswordRequest,
    serialize_paste,
    serialize_preview,
)
from ..services.paste_store import PasteStore, get_paste_store

router = APIRouter(prefix="/api/pastes", tags=["pastes"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_paste(
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    expires_in: Optional[int] = Form(None, alias="expiresIn"),
    is_private: bool = Form(False, alias="isPrivate"),
    is_editable: bool = Form(False, alias="isEditable"),
    custom_url: Optional[str] = Form(None, alias="customUrl"),
    password: Optional[str] = Form(None),
    is_jupyter_style: bool = Form(False, alias="isJupyterStyle"),
    blocks: Optional[str] = Form(None),
    files: List[UploadFile] = File(default=[]),
    store: PasteStore = Depends(get_paste_store),
):
    """Create a paste from a multipart form."""
    paste = await store.create_paste(
        content=content,
        title=title,
        expires_in=expires_in,
        is_private=is_private,
        is_editable=is_editable,
        custom_url=custom_url,
        password=password,
        is_jupyter_style=is_jupyter_style,
        blocks=blocks,
        files=files,
    )
    return {"message": "Paste created successfully", "paste": serialize_paste(paste)}


@router.get("")
@router.get("/recent")
async def list_recent_pastes(
    limit: Optional[int] = Query(None, ge=1),
    page: int = Query(1, ge=1),
    store: PasteStore = Depends(get_paste_store),
):
    """Recent public, unexpired pastes with a short content preview."""
    pastes = await store.list_recent(limit=limit, page=page)
    return [serialize_preview(p) for p in pastes]


@router.get("/check-url/{custom_url}")
async def check_custom_url(custom_url: str, store: PasteStore = Depends(get_paste_store)):
    available, reason = await store.check_custom_url(custom_url)
    body = {"available": available}
    if reason:
        body["reason"] = reason
    return body


@router.get("/raw/{identifier}", response_class=PlainTextResponse)
async def get_raw_paste(
    identifier: str,
    password: Optional[str] = None,
    store: PasteStore = Depends(get_paste_store),
):
    return PlainTextResponse(await store.get_raw_content(identifier, password))


@router.get("/{identifier}")
async def get_paste(
    identifier: str,
    password: Optional[str] = None,
    store: PasteStore = Depends(get_paste_store),
):
    """Get a paste by id or custom URL; counts as a view."""
    paste = await store.get_paste(identifier, password)
    return {"paste": serialize_paste(paste)}


@router.post("/{identifier}/verify-password")
async def verify_paste_password(
    identifier: str,
    request: VerifyPasswordRequest,
    store: PasteStore = Depends(get_paste_store),
):
    await store.verify_password(identifier, request.password)
    return {"message": "Password verified successfully", "success": True}


@router.put("/{identifier}")
async def update_paste(
    identifier: str,
    request: PasteUpdateRequest,
    store: PasteStore = Depends(get_paste_store),
):
    """
    Update title, flat content or the block set of an editable paste.

    A non-empty ``blocks`` payload wins over ``content``.
    """
    paste = await store.update_paste(
        identifier,
        title=request.title,
        content=request.content,
        blocks=request.blocks,
    )
    return {"message": "Paste updated successfully", "paste": serialize_paste(paste)}


@router.delete("/{identifier}")
async def delete_paste(identifier: str, store: PasteStore = Depends(get_paste_store)):
    await store.delete_paste(identifier)
    return {"message": "Paste deleted successfully"}


@router.get("/{paste_id}/files/{file_id}")
async def download_file(
    paste_id: str,
    file_id: str,
    password: Optional[str] = None,
    store: PasteStore = Depends(get_paste_store),
):
    file = await store.get_file(paste_id, file_id, password)
    if not os.path.exists(file.storage_path):
        raise NotFoundError("File not found on disk")
    return FileResponse(
        file.storage_path,
        media_type=file.mime_type,
        filename=file.original_name,
    )
