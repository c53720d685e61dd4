from typing import BinaryIO, Optional, Union


class StorageProvider:
    """Object storage keyed by (bucket, key). Services never look at file bytes."""

    def upload(self, bucket: str, key: str, data: Union[bytes, BinaryIO], content_type: Optional[str] = None) -> str:
        """Store an object and return its path inside the bucket."""
        raise NotImplementedError

    def get_signed_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        raise NotImplementedError

    def exists(self, bucket: str, key: str) -> bool:
        raise NotImplementedError

    def delete(self, bucket: str, key: str) -> None:
        raise NotImplementedError


class UploadedFile:
    """A file handed to a service for storage."""

    def __init__(self, filename: str, data: Union[bytes, BinaryIO], content_type: Optional[str] = None):
        self.filename = filename
        self.data = data
        self.content_type = content_type

    @property
    def extension(self) -> str:
        return self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""
