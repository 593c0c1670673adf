"""
Idempotent publishing of rendered PDFs to the DAM.

Repeated deliveries of the same webhook must not accumulate assets, so every
upload first looks for an asset with the exact file name tagged with the same
CMS entry id. A hit is updated in place (new binary, same identifier); only a
miss creates a new asset, which is then re-read by id because the create
response does not carry the full record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..models import ErrorCode
from .base import Asset, AssetMetadata, AssetStore, AssetStoreError

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    success: bool
    asset: Optional[Asset] = None
    reused_existing: bool = False
    error_code: Optional[ErrorCode] = None
    error: Optional[str] = None


class AssetRepository:
    def __init__(self, store: AssetStore, organization: str) -> None:
        self.store = store
        self.organization = organization

    def close(self) -> None:
        self.store.close()

    def upload(self, content: bytes, file_name: str, correlation_id: str) -> UploadResult:
        """
        Find-or-create the asset for ``file_name`` and ``correlation_id``.

        Args:
            content: PDF bytes to publish
            file_name: Exact asset name, e.g. ``asthma-care.pdf``
            correlation_id: CMS entry id the asset belongs to

        Returns:
            UploadResult with the canonical asset, or UPLOAD_FAILED and the
            store's error message
        """
        metadata = AssetMetadata.for_file(file_name, correlation_id, self.organization)
        try:
            existing = self.store.find_by_name(file_name, metadata)
            if existing:
                logger.info(f"Updating existing asset {existing.id} for '{file_name}' ({correlation_id})")
            else:
                logger.info(f"Creating new asset for '{file_name}' ({correlation_id})")

            receipt = self.store.save(content, file_name, metadata, asset_id=existing.id if existing else None)
            asset = existing or self.store.get(receipt.asset_id)
        except AssetStoreError as exc:
            logger.error(f"Upload of '{file_name}' failed: {exc}")
            return UploadResult(success=False, error_code=ErrorCode.UPLOAD_FAILED, error=str(exc))

        asset.metadata = asset.metadata or metadata
        asset.batch_id = receipt.batch_id or asset.batch_id
        asset.location = receipt.location or asset.location
        asset.content = content
        return UploadResult(success=True, asset=asset, reused_existing=existing is not None)
