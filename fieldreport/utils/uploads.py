from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass

from fieldreport.core.config import settings
from fieldreport.core.rbac import require

logger = logging.getLogger("fieldreport.uploads")

PHOTO_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".heic", ".gif"}


@dataclass(frozen=True, slots=True)
class StoredFile:
    filename: str
    path: str
    url: str


def is_upload(up) -> bool:
    # NOTE: request.form() returns a Starlette UploadFile instance (FastAPI's UploadFile is a subclass).
    # Rely on duck-typing instead of isinstance() to avoid false negatives.
    return bool(getattr(up, "filename", None)) and hasattr(up, "read")


async def save_photo(up, prefix: str = "photo") -> StoredFile:
    """Stream an uploaded photo to UPLOAD_DIR, enforcing MAX_UPLOAD_MB."""
    ext = os.path.splitext(up.filename)[1].lower()
    require(ext in PHOTO_EXTENSIONS, f"Unsupported photo type: {ext or 'none'}.", 400)

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    fname = f"{prefix}_{uuid.uuid4().hex}{ext}"
    dest = os.path.join(settings.UPLOAD_DIR, fname)
    max_bytes = int(settings.MAX_UPLOAD_MB) * 1024 * 1024
    size = 0
    too_big = False
    with open(dest, "wb") as out:
        while True:
            chunk = await up.read(1024 * 1024)
            if not chunk:
                break
            size += len(chunk)
            if size > max_bytes:
                too_big = True
                break
            out.write(chunk)
    if too_big:
        os.remove(dest)
        require(False, f"Photo is too large (max {settings.MAX_UPLOAD_MB}MB).", 400)
    return StoredFile(filename=up.filename, path=dest, url=f"/uploads/{fname}")


def discard(files: list[StoredFile]) -> None:
    """Remove files written for a request whose transaction did not commit."""
    for f in files:
        try:
            os.remove(f.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove orphan upload %s: %s", f.path, exc)
