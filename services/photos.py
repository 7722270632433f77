from __future__ import annotations

import functools
import uuid
from pathlib import Path
from typing import Dict, List

import anyio
from fastapi import UploadFile

import config
from models.activities import PhotoEntry

from .errors import ValidationError

# Allowed content-types -> file extensions
ALLOWED: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

MAX_BYTES = 5 * 1024 * 1024  # 5MB
MAX_FILES = 10


def upload_dir() -> Path:
    path = Path(config.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def public_url(name: str) -> str:
    return "/" + str(Path(config.UPLOAD_DIR) / name).lstrip("/").replace("\\", "/")


async def store_photo(file: UploadFile, owner: str) -> PhotoEntry:
    ext = ALLOWED.get(file.content_type or "")
    if not ext:
        raise ValidationError("Only jpeg/png/webp photos are allowed")

    data = await file.read()
    if not data:
        raise ValidationError("Empty photo upload")
    if len(data) > MAX_BYTES:
        raise ValidationError("Photo too large (max 5MB)")

    name = f"{owner}_{uuid.uuid4().hex}.{ext}"
    path = upload_dir() / name

    # async-safe write (no blocking)
    await anyio.to_thread.run_sync(path.write_bytes, data)

    return PhotoEntry(
        url=public_url(name),
        filename=name,
        original_name=file.filename,
        mimetype=file.content_type,
        size=len(data),
    )


async def store_photos(files: List[UploadFile], owner: str) -> List[PhotoEntry]:
    if len(files) > MAX_FILES:
        raise ValidationError(f"At most {MAX_FILES} photos can be uploaded at once")

    stored: List[PhotoEntry] = []
    try:
        for f in files:
            stored.append(await store_photo(f, owner))
    except Exception:
        await discard_photos(stored)
        raise
    return stored


async def discard_photos(entries: List[PhotoEntry]) -> None:
    """Remove stored uploads whose activity was never recorded."""
    for entry in entries:
        if not entry.filename:
            continue
        path = upload_dir() / entry.filename
        await anyio.to_thread.run_sync(functools.partial(path.unlink, missing_ok=True))
