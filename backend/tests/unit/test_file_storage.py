"""
Unit tests for report file storage.
"""

import io
import os

import pytest
from fastapi import UploadFile

from utils.file_storage import (
    FileValidationError,
    build_stored_filename,
    delete_file,
    sanitize_filename,
    save_upload_file,
    validate_report_file,
)


class TestValidateReportFile:

    def test_accepts_pdf(self):
        validate_report_file("application/pdf", 5 * 1024 * 1024)

    def test_rejects_executable(self):
        with pytest.raises(FileValidationError) as exc_info:
            validate_report_file("application/x-msdownload", 1024)
        assert exc_info.value.message == "Invalid file type"
        assert exc_info.value.status_code == 400

    def test_rejects_missing_content_type(self):
        with pytest.raises(FileValidationError, match="Invalid file type"):
            validate_report_file(None, 1024)

    def test_rejects_oversized_file(self):
        with pytest.raises(FileValidationError) as exc_info:
            validate_report_file("image/png", 100 * 1024 * 1024 + 1)
        assert exc_info.value.status_code == 413
        assert exc_info.value.message == "File size too large (max 100MB)"

    def test_custom_limit(self):
        with pytest.raises(FileValidationError, match="max 10MB"):
            validate_report_file("image/png", 11 * 1024 * 1024, max_size_bytes=10 * 1024 * 1024)


class TestFilenames:

    def test_sanitize_strips_directories(self):
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("C:\\Users\\me\\blood panel.pdf") == "blood_panel.pdf"

    def test_sanitize_empty_name(self):
        assert sanitize_filename("...") == "file"

    def test_stored_filename_format(self):
        name = build_stored_filename("report", "blood panel.pdf")

        field, timestamp, suffix, original = name.split("-", 3)
        assert field == "report"
        assert timestamp.isdigit()
        assert suffix.isdigit()
        assert original == "blood_panel.pdf"

    def test_stored_filenames_do_not_collide(self):
        names = {build_stored_filename("report", "scan.png") for _ in range(50)}
        assert len(names) == 50


class TestSaveUploadFile:

    @pytest.mark.asyncio
    async def test_saves_bytes_under_upload_dir(self, upload_dir):
        upload = UploadFile(file=io.BytesIO(b"%PDF-1.4 hello"), filename="cbc.pdf")

        stored = await save_upload_file(upload)

        assert os.path.dirname(stored.path) == str(upload_dir)
        assert stored.size_bytes == 14
        with open(stored.path, "rb") as f:
            assert f.read() == b"%PDF-1.4 hello"

    @pytest.mark.asyncio
    async def test_oversized_stream_removed(self, upload_dir):
        upload = UploadFile(file=io.BytesIO(b"x" * 2048), filename="big.pdf")

        with pytest.raises(FileValidationError) as exc_info:
            await save_upload_file(upload, max_size_bytes=1024)

        assert exc_info.value.status_code == 413
        assert os.listdir(upload_dir) == []

    @pytest.mark.asyncio
    async def test_delete_file(self, tmp_path):
        path = tmp_path / "stored.png"
        path.write_bytes(b"png")

        await delete_file(str(path))
        await delete_file(str(path))
        await delete_file(None)

        assert not path.exists()


class TestUtilsPackage:

    def test_utils_resolves_to_source_package(self):
        """The test helpers module must not shadow the ``utils`` package."""
        import utils

        assert hasattr(utils, "__path__")
        assert os.path.basename(os.path.dirname(utils.__file__)) == "utils"
