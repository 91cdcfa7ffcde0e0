"""
Local filesystem storage provider for development.
Saves files to a local directory instead of Azure Blob Storage.

Download URLs point at ``/files/local/<key>`` and carry a short-lived signed
token, so they behave like blob SAS links.
"""
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

import jwt

from ..config import settings
from .provider import StorageProvider


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    name = "local"

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        """Get the local filesystem path for a given key."""
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        return self.base_dir / clean_key

    def put(self, key: str, data: Union[bytes, BinaryIO], content_type: str) -> None:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data.read() if hasattr(data, "read") else data)

    def read(self, key: str) -> bytes:
        return self._get_path(key).read_bytes()

    def sign(self, key: str, expires_s: int) -> str:
        expiry = datetime.now(timezone.utc) + timedelta(seconds=expires_s)
        payload = {"key": key.lstrip("/"), "exp": int(expiry.timestamp()), "type": "file"}
        return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    def verify(self, key: str, token: str) -> bool:
        try:
            payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        except jwt.InvalidTokenError:
            return False
        return payload.get("type") == "file" and payload.get("key") == key.lstrip("/")

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        """Get a signed local file URL for download."""
        if not self.exists(key):
            return None
        token = self.sign(key, expires_s)
        return f"{settings.public_base_url}/files/local/{quote(key.lstrip('/'))}?token={token}"

    def exists(self, key: str) -> bool:
        return self._get_path(key).exists()

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        if path.exists():
            path.unlink()
