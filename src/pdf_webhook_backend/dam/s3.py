"""
S3-backed asset store.

For deployments without a DAM portal the rendered PDFs can be kept in an S3
bucket. The object key ``<prefix><subject_id>/<file_name>`` is the asset's
stable identifier and the metadata tuple is stored as object metadata, so a
lookup is a single ``head_object`` and an update overwrites the same key.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .base import Asset, AssetMetadata, AssetStore, AssetStoreError, SaveReceipt

logger = logging.getLogger(__name__)

CONTENT_TYPES = {"pdf": "application/pdf"}


class S3AssetStore(AssetStore):
    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        presign_expiration: int = 3600,
        client: Any = None,
    ) -> None:
        if not bucket:
            raise ValueError("S3 bucket must be configured")
        self.bucket = bucket
        self.prefix = prefix
        self.presign_expiration = presign_expiration
        self._client = client or boto3.client("s3")
        self._owns_client = client is None

    def key_for(self, name: str, metadata: AssetMetadata) -> str:
        return f"{self.prefix}{metadata.subject_id}/{name}"

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _presigned_url(self, key: str) -> Optional[str]:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.presign_expiration,
            )
        except ClientError as e:
            logger.error(f"Failed to generate presigned URL: {e}")
            return None

    def _head(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            return self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in {"404", "NoSuchKey", "NotFound"}:
                return None
            raise AssetStoreError(f"Looking up s3://{self.bucket}/{key} failed: {e}") from e
        except BotoCoreError as e:
            raise AssetStoreError(f"Looking up s3://{self.bucket}/{key} failed: {e}") from e

    @staticmethod
    def _metadata_from_head(head: Dict[str, Any]) -> Optional[AssetMetadata]:
        stored = head.get("Metadata") or {}
        try:
            return AssetMetadata(
                subject_id=stored["subject_id"],
                asset_category=stored["asset_category"],
                file_extension=stored["file_extension"],
                organization=stored["organization"],
            )
        except KeyError:
            return None

    def find_by_name(self, name: str, metadata: AssetMetadata) -> Optional[Asset]:
        key = self.key_for(name, metadata)
        head = self._head(key)
        if head is None:
            return None
        stored = self._metadata_from_head(head)
        if stored != metadata:
            logger.warning(f"s3://{self.bucket}/{key} exists with different metadata; not treating it as canonical")
            return None
        return Asset(id=key, name=name, metadata=stored, location=self._presigned_url(key), raw=head)

    def save(
        self,
        content: bytes,
        file_name: str,
        metadata: AssetMetadata,
        asset_id: Optional[str] = None,
    ) -> SaveReceipt:
        key = asset_id or self.key_for(file_name, metadata)
        try:
            logger.info(f"Uploading {file_name} to s3://{self.bucket}/{key}")
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=CONTENT_TYPES.get(metadata.file_extension, "application/octet-stream"),
                Metadata=metadata.as_dict(),
            )
        except (ClientError, BotoCoreError) as e:
            raise AssetStoreError(f"S3 upload failed: {e}") from e
        return SaveReceipt(asset_id=key)

    def get(self, asset_id: str) -> Asset:
        head = self._head(asset_id)
        if head is None:
            raise AssetStoreError(f"s3://{self.bucket}/{asset_id} not found after upload")
        return Asset(
            id=asset_id,
            name=asset_id.rsplit("/", 1)[-1],
            metadata=self._metadata_from_head(head),
            location=self._presigned_url(asset_id),
            raw=head,
        )
