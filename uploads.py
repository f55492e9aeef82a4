"""
File uploads: validation, storage under UPLOAD_DIR and static serving.

Stored files are named `<field>-<ms timestamp>-<random>.<ext>` and referenced
from documents as `/uploads/<filename>`.
"""

import logging
import mimetypes
import os
import re
import secrets
import time
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Tuple

from pydantic import BaseModel
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.staticfiles import StaticFiles

from config import settings
from errors import UploadError

logger = logging.getLogger(__name__)

MB = 1024 * 1024
CHUNK_SIZE = 64 * 1024
PUBLIC_PREFIX = "/uploads/"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Cross-Origin-Resource-Policy": "cross-origin",
}

PLACEHOLDER_SVG = """<svg xmlns="http://www.w3.org/2000/svg" width="400" height="300" viewBox="0 0 400 300">
<rect width="400" height="300" fill="#E5E7EB"/>
<path d="M150 190l40-50 30 36 20-24 40 38H150z" fill="#9CA3AF"/>
<circle cx="245" cy="120" r="14" fill="#9CA3AF"/>
<text x="200" y="240" font-family="sans-serif" font-size="16" fill="#6B7280" text-anchor="middle">Image not available</text>
</svg>
"""


class UploadPolicy:
    def __init__(self, accept: Iterable[str], max_bytes: int, label: str):
        self.accept = tuple(accept)
        self.max_bytes = max_bytes
        self.label = label

    def accepts(self, mime_type: Optional[str]) -> bool:
        if not mime_type:
            return False
        mime_type = mime_type.lower()
        for pattern in self.accept:
            if pattern.endswith("/*"):
                if mime_type.startswith(pattern[:-1]):
                    return True
            elif mime_type == pattern:
                return True
        return False


PROFILE_ASSETS = UploadPolicy(["image/*", "application/pdf"], 10 * MB, "Only image and PDF files are allowed!")
IMAGES = UploadPolicy(["image/*"], 10 * MB, "Profile picture must be an image file")
PROJECT_IMAGES = UploadPolicy(["image/*"], 5 * MB, "Only image files are allowed")


class StoredFile(BaseModel):
    filename: str
    originalName: str
    path: str
    size: int
    mimetype: str


def upload_dir() -> Path:
    path = Path(settings.upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9_]", "", value.lower())


def build_filename(field_name: str, original_name: Optional[str], mime_type: str) -> str:
    prefix = _slug(field_name) or "file"
    ext = _slug(Path(original_name or "").suffix.lstrip("."))[:10]
    if not ext:
        guessed = mimetypes.guess_extension(mime_type or "") or ""
        ext = _slug(guessed.lstrip("."))[:10]
    stamp = int(time.time() * 1000)
    name = f"{prefix}-{stamp}-{secrets.randbelow(10 ** 9)}"
    return f"{name}.{ext}" if ext else name


def store(
    stream: BinaryIO,
    mime_type: Optional[str],
    field_name: str,
    original_name: Optional[str],
    policy: UploadPolicy,
    size: Optional[int] = None,
) -> StoredFile:
    """Validate and write one file, streaming so oversize uploads are cut off early."""
    if not policy.accepts(mime_type):
        logger.info("Rejected upload %r with type %s", original_name, mime_type)
        raise UploadError(policy.label)
    limit_mb = policy.max_bytes // MB
    if size is not None and size > policy.max_bytes:
        raise UploadError(f"File too large, maximum size is {limit_mb}MB")

    filename = build_filename(field_name, original_name, mime_type)
    target = upload_dir() / filename
    written = 0
    try:
        with open(target, "wb") as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > policy.max_bytes:
                    raise UploadError(f"File too large, maximum size is {limit_mb}MB")
                out.write(chunk)
    except BaseException:
        target.unlink(missing_ok=True)
        raise

    return StoredFile(
        filename=filename,
        originalName=original_name or filename,
        path=PUBLIC_PREFIX + filename,
        size=written,
        mimetype=mime_type,
    )


def store_upload(upload: UploadFile, policy: UploadPolicy, field_name: str) -> StoredFile:
    return store(upload.file, upload.content_type, field_name, upload.filename, policy, size=upload.size)


def store_all(uploads: List[Tuple[str, UploadFile]], policy: UploadPolicy) -> List[StoredFile]:
    """Store several files; if any is rejected the ones already written are removed."""
    stored: List[StoredFile] = []
    try:
        for field_name, upload in uploads:
            stored.append(store_upload(upload, policy, field_name))
    except Exception:
        discard(stored)
        raise
    return stored


def discard(files: Iterable[StoredFile]) -> None:
    for item in files:
        (upload_dir() / item.filename).unlink(missing_ok=True)


def resolve_public_path(public_path: str) -> Optional[Path]:
    """Map `/uploads/x` (or `uploads/x`) to the file on disk, if it exists."""
    if not public_path:
        return None
    name = os.path.basename(public_path.replace("\\", "/"))
    if not name:
        return None
    candidate = upload_dir() / name
    return candidate if candidate.is_file() else None


def is_upload_file(value) -> bool:
    return isinstance(value, UploadFile)


class UploadFiles(StaticFiles):
    """Static server for the uploads directory: open CORS, placeholder instead of 404."""

    async def get_response(self, path: str, scope) -> Response:
        try:
            response = await super().get_response(path, scope)
        except HTTPException as exc:
            if exc.status_code != 404:
                raise
            response = self.placeholder()
        else:
            if response.status_code == 404:
                response = self.placeholder()
        response.headers.update(CORS_HEADERS)
        return response

    @staticmethod
    def placeholder() -> Response:
        return Response(content=PLACEHOLDER_SVG, media_type="image/svg+xml", headers={"Cache-Control": "no-cache"})
