from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Optional, Union

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import (
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
    BlobSasPermissions,
)

from ..config import settings
from .provider import StorageProvider


class BlobStorageProvider(StorageProvider):
    """One Azure container per bucket, named <AZURE_BLOB_CONTAINER_PREFIX><bucket>."""

    def __init__(self) -> None:
        if not settings.azure_blob_connection:
            raise RuntimeError("AZURE_BLOB_CONNECTION must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)

    def _container(self, bucket: str) -> str:
        return f"{settings.azure_blob_container_prefix}{bucket}"

    def upload(self, bucket: str, key: str, data: Union[bytes, BinaryIO], content_type: Optional[str] = None) -> str:
        client = self._service.get_blob_client(self._container(bucket), key.lstrip("/"))
        client.upload_blob(
            data,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type) if content_type else None,
        )
        return key.lstrip("/")

    def get_signed_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        expiry = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self._container(bucket),
            blob_name=key.lstrip("/"),
            account_key=self._service.credential.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=expiry,
        )
        blob_url = self._service.get_blob_client(self._container(bucket), key.lstrip("/")).url
        return f"{blob_url}?{sas}"

    def exists(self, bucket: str, key: str) -> bool:
        client = self._service.get_blob_client(self._container(bucket), key.lstrip("/"))
        return client.exists()

    def delete(self, bucket: str, key: str) -> None:
        client = self._service.get_blob_client(self._container(bucket), key.lstrip("/"))
        try:
            client.delete_blob()
        except ResourceNotFoundError:
            pass
