"""
Local filesystem storage provider for development.
Objects live under <LOCAL_STORAGE_DIR>/<bucket>/<key>; downloads go through
/files/local with a short-lived signed token.
"""
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

import jwt
import structlog

from ..config import settings
from .provider import StorageProvider

logger = structlog.get_logger(__name__)

_TOKEN_AUDIENCE = "local-storage"


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, bucket: str, key: str) -> Path:
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        clean_bucket = bucket.strip("/").replace("..", "")
        return self.base_dir / clean_bucket / clean_key

    def upload(self, bucket: str, key: str, data: Union[bytes, BinaryIO], content_type: Optional[str] = None) -> str:
        path = self._get_path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            if hasattr(data, "read"):
                f.write(data.read())
            else:
                f.write(data)
        logger.info("local_object_stored", bucket=bucket, key=key)
        return key.lstrip("/")

    def get_signed_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        expires = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        token = jwt.encode(
            {"bucket": bucket, "key": key.lstrip("/"), "aud": _TOKEN_AUDIENCE, "exp": expires},
            settings.auth_jwt_secret,
            algorithm="HS256",
        )
        return f"{settings.public_base_url}/files/local?token={quote(token)}"

    def resolve_signed_token(self, token: str) -> Path:
        """Path for a token minted by get_signed_url; raises jwt.InvalidTokenError when bad or expired."""
        payload = jwt.decode(token, settings.auth_jwt_secret, algorithms=["HS256"], audience=_TOKEN_AUDIENCE)
        return self._get_path(payload["bucket"], payload["key"])

    def exists(self, bucket: str, key: str) -> bool:
        return self._get_path(bucket, key).exists()

    def delete(self, bucket: str, key: str) -> None:
        self._get_path(bucket, key).unlink(missing_ok=True)
