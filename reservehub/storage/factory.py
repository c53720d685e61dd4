from ..config import settings
from .provider import StorageProvider
from .local_provider import LocalStorageProvider


def get_storage() -> StorageProvider:
    """Storage provider selected by STORAGE_PROVIDER (local|blob)"""
    if settings.storage_provider == "blob":
        from .blob_provider import BlobStorageProvider

        return BlobStorageProvider()
    return LocalStorageProvider()
