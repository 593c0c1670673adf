"""Digital-asset-management stores and the idempotent asset repository."""

from .base import Asset, AssetMetadata, AssetStore, AssetStoreError, SaveReceipt
from .repository import AssetRepository, UploadResult

__all__ = [
    "Asset",
    "AssetMetadata",
    "AssetRepository",
    "AssetStore",
    "AssetStoreError",
    "SaveReceipt",
    "UploadResult",
]
