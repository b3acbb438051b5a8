from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..common.validators import round_half_up
from ..core.constants import MAX_CONTENT_UPLOAD_MB
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "video/mp4",
    "video/avi",
    "video/mov",
    "image/jpeg",
    "image/png",
    "image/gif",
    "text/plain",
    "application/zip",
})

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def is_valid_mime_type(mime_type: Optional[str]) -> bool:
    return (mime_type or "").lower() in ALLOWED_MIME_TYPES


def format_file_size(size: int) -> str:
    """Human readable size, e.g. 1536 -> '1.5 KB'."""
    if not size or size <= 0:
        return "0 Bytes"
    i = 0
    while size >= 1024 ** (i + 1) and i < len(_SIZE_UNITS) - 1:
        i += 1
    value = round_half_up(size / (1024 ** i), 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[i]}"


@dataclass(frozen=True)
class StoredFile:
    file_path: str
    file_size: int
    mime_type: str


class ContentFileStore:
    """Keeps uploaded learning material under one folder."""

    def __init__(self, upload_folder: str, *, max_size_mb: int = MAX_CONTENT_UPLOAD_MB):
        self._root = Path(upload_folder)
        self._max_bytes = int(max_size_mb) * 1024 * 1024

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def save(self, upload: FileStorage) -> StoredFile:
        mime_type = (upload.mimetype or "").lower()
        if not is_valid_mime_type(mime_type):
            raise ValidationError(f"File type {mime_type or 'unknown'} not allowed")

        stream = upload.stream
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(0)
        if size > self._max_bytes:
            raise ValidationError(
                f"File is too large ({format_file_size(size)}); limit is {format_file_size(self._max_bytes)}"
            )

        original = secure_filename(upload.filename or "") or "upload"
        stored_name = f"{uuid.uuid4().hex}-{original}"
        self._root.mkdir(parents=True, exist_ok=True)
        upload.save(str(self._root / stored_name))
        logger.info("Stored upload %s (%s)", stored_name, format_file_size(size))
        return StoredFile(file_path=stored_name, file_size=size, mime_type=mime_type)

    def path_for(self, file_path: str) -> Path:
        return self._root / secure_filename(file_path)

    def delete(self, file_path: Optional[str]) -> None:
        if not file_path:
            return
        try:
            self.path_for(file_path).unlink()
        except FileNotFoundError:
            logger.warning("Content file %s was already gone", file_path)
