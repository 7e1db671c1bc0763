"""Tests for local file storage."""

from unittest.mock import patch

import pytest

from property_core.config import StorageConfig
from property_core.exceptions import ErrorCode, ExternalServiceError
from property_core.utils.file_storage import LocalFileStorage


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(StorageConfig(base_path=str(tmp_path), public_url_base="https://files.example.com/"))


def test_upload_and_read(storage, tmp_path):
    key = storage.upload("leads/lead-1/passport.jpg", b"jpeg-bytes", "image/jpeg")

    assert key == "leads/lead-1/passport.jpg"
    assert (tmp_path / "leads" / "lead-1" / "passport.jpg").read_bytes() == b"jpeg-bytes"
    assert storage.read(key) == b"jpeg-bytes"


def test_delete_ignores_missing(storage):
    storage.upload("a.txt", b"a")

    storage.delete("a.txt")
    storage.delete("a.txt")

    with pytest.raises(FileNotFoundError):
        storage.read("a.txt")


def test_keys_cannot_escape_root(storage):
    with pytest.raises(ValueError):
        storage.upload("../outside.txt", b"x")


def test_write_failure(storage):
    with patch("pathlib.Path.write_bytes", side_effect=PermissionError("read-only")):
        with pytest.raises(ExternalServiceError) as exc_info:
            storage.upload("docs/a.pdf", b"%PDF")

    assert exc_info.value.error_code == ErrorCode.STORAGE_ERROR


def test_download_url_uses_storage_key(storage, tmp_path):
    storage.upload("docs/a.pdf", b"%PDF")

    with patch("property_core.utils.file_storage.time.time", return_value=1000):
        url = storage.get_download_url("docs/a.pdf", expires_in=60)

    assert url == "https://files.example.com/docs/a.pdf?expires=1060"
    assert str(tmp_path) not in url


def test_download_url_rejects_escaping_key(storage):
    with pytest.raises(ValueError):
        storage.get_download_url("../secrets.txt")
