from typing import BinaryIO, Optional, Union


class StorageProvider:
    """Object storage used for uploaded movement forms."""

    name = "base"

    def put(self, key: str, data: Union[bytes, BinaryIO], content_type: str) -> None:
        raise NotImplementedError

    def read(self, key: str) -> bytes:
        raise NotImplementedError

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        """Time-limited URL for ``key``, or None when the object does not exist."""
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError
