"""
Local storage for uploaded report files.

Files are written under ``UPLOAD_DIR`` as
``<field>-<timestamp>-<random>-<originalname>`` so concurrent uploads of
the same file never collide. A stored file lives exactly as long as the
database record that points at it.
"""

import logging
import os
import random
import re
import time
from dataclasses import dataclass
from typing import Iterable, Optional

import aiofiles
from fastapi import UploadFile

from core import config
from core.constants import (
    ALLOWED_REPORT_CONTENT_TYPES,
    MAX_REPORT_SIZE_BYTES,
    REPORT_FILE_FIELD,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB


class FileValidationError(ValueError):
    """Raised when an uploaded file fails type or size validation."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class StoredFile:
    stored_filename: str
    path: str
    size_bytes: int


def validate_report_file(
    content_type: Optional[str],
    size_bytes: Optional[int],
    allowed_types: Iterable[str] = ALLOWED_REPORT_CONTENT_TYPES,
    max_size_bytes: int = MAX_REPORT_SIZE_BYTES,
) -> None:
    """
    Check a file's declared MIME type and size before it is stored.

    Raises:
        FileValidationError: "Invalid file type" (400) or
            "File size too large" (413).
    """
    if not content_type or content_type not in allowed_types:
        raise FileValidationError("Invalid file type")
    if size_bytes is not None and size_bytes > max_size_bytes:
        raise FileValidationError(
            f"File size too large (max {max_size_bytes // (1024 * 1024)}MB)",
            status_code=413,
        )


def sanitize_filename(filename: str) -> str:
    """Strip directories and characters that do not belong in a file name."""
    name = os.path.basename(filename.replace("\\", "/"))
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return name or "file"


def build_stored_filename(field_name: str, original_filename: str) -> str:
    timestamp = int(time.time() * 1000)
    suffix = random.randint(0, 10**9 - 1)
    return f"{field_name}-{timestamp}-{suffix}-{sanitize_filename(original_filename)}"


def get_upload_dir() -> str:
    upload_dir = os.path.abspath(config.UPLOAD_DIR)
    os.makedirs(upload_dir, exist_ok=True)
    return upload_dir


async def save_upload_file(
    upload_file: UploadFile,
    field_name: str = REPORT_FILE_FIELD,
    max_size_bytes: int = MAX_REPORT_SIZE_BYTES,
) -> StoredFile:
    """
    Write an uploaded file to local storage in chunks.

    The size limit is enforced again while streaming, since the declared
    size of a multipart part is not always known up front.

    Returns:
        StoredFile with the generated name, absolute path and byte count.
    """
    stored_filename = build_stored_filename(field_name, upload_file.filename or "file")
    file_path = os.path.join(get_upload_dir(), stored_filename)

    await upload_file.seek(0)
    size_bytes = 0
    async with aiofiles.open(file_path, "wb") as out_file:
        while content := await upload_file.read(CHUNK_SIZE):
            size_bytes += len(content)
            if size_bytes > max_size_bytes:
                break
            await out_file.write(content)

    if size_bytes > max_size_bytes:
        await delete_file(file_path)
        raise FileValidationError(
            f"File size too large (max {max_size_bytes // (1024 * 1024)}MB)",
            status_code=413,
        )

    logger.info(f"Stored upload {stored_filename} ({size_bytes} bytes)")
    return StoredFile(stored_filename=stored_filename, path=file_path, size_bytes=size_bytes)


async def delete_file(file_path: Optional[str]) -> None:
    """Delete a stored file. Missing files are ignored; failures are logged."""
    if not file_path:
        return
    if not os.path.exists(file_path):
        return
    try:
        os.remove(file_path)
    except OSError as e:
        logger.error(f"Failed to delete stored file {file_path}: {e}")
