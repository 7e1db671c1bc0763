"""Blob storage for uploaded files."""

import os
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..config import StorageConfig, get_config
from ..exceptions import ErrorCode, ExternalServiceError


class FileStorage(ABC):
    @abstractmethod
    def upload(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Store ``content`` under ``key`` and return the stored path."""

    @abstractmethod
    def read(self, key: str) -> bytes:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object; missing objects are ignored."""

    @abstractmethod
    def get_download_url(self, key: str, expires_in: int = 3600) -> str:
        ...


class LocalFileStorage(FileStorage):
    """Stores files under a base directory on the local filesystem."""

    def __init__(self, config: Optional[StorageConfig] = None):
        self.config = config or get_config().storage
        self.base_path = Path(self.config.base_path).resolve()

    def _path_for(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path not in path.parents:
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return path

    def upload(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise ExternalServiceError(
                f"Failed to store file {key}: {e}",
                service_name="file_storage",
                error_code=ErrorCode.STORAGE_ERROR,
                cause=e,
            ) from e
        return key

    def read(self, key: str) -> bytes:
        return self._path_for(key).read_bytes()

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            os.remove(path)

    def get_download_url(self, key: str, expires_in: int = 3600) -> str:
        self._path_for(key)
        expires_at = int(time.time()) + expires_in
        return f"{self.config.public_url_base}{key}?expires={expires_at}"
