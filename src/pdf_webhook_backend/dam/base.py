"""
Shared types for digital-asset-management stores.

A store knows how to find, save and fetch assets in one particular DAM. The
find-before-create policy that keeps redelivered webhooks from piling up
duplicate assets lives in :class:`~pdf_webhook_backend.dam.repository.AssetRepository`,
not in the stores.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from ..utils import split_extension

ASSET_CATEGORIES = {
    "pdf": "Documents",
    "mov": "Videos",
    "mp4": "Videos",
    "svg": "Graphics",
}
DEFAULT_ASSET_CATEGORY = "Photography"


class AssetStoreError(RuntimeError):
    """Raised when the DAM rejects a lookup, binary or metadata."""


@dataclass(frozen=True)
class AssetMetadata:
    """Tags every published asset carries and every lookup filters on."""

    subject_id: str
    asset_category: str
    file_extension: str
    organization: str

    @classmethod
    def for_file(cls, file_name: str, subject_id: str, organization: str) -> "AssetMetadata":
        _, extension = split_extension(file_name)
        return cls(
            subject_id=subject_id,
            asset_category=ASSET_CATEGORIES.get(extension, DEFAULT_ASSET_CATEGORY),
            file_extension=extension,
            organization=organization,
        )

    def as_dict(self) -> Dict[str, str]:
        return {
            "subject_id": self.subject_id,
            "asset_category": self.asset_category,
            "file_extension": self.file_extension,
            "organization": self.organization,
        }


@dataclass
class Asset:
    id: str
    name: str
    metadata: Optional[AssetMetadata] = None
    location: Optional[str] = None
    batch_id: Optional[str] = None
    content: Optional[bytes] = field(default=None, repr=False)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class SaveReceipt:
    """What the DAM answers to a save: the asset id plus whatever it assigned."""

    asset_id: str
    batch_id: Optional[str] = None
    location: Optional[str] = None


class AssetStore(Protocol):
    """Contract every DAM backend implements."""

    def find_by_name(self, name: str, metadata: AssetMetadata) -> Optional[Asset]:
        """Return the asset whose name equals ``name`` exactly and carries ``metadata``."""
        ...

    def save(
        self,
        content: bytes,
        file_name: str,
        metadata: AssetMetadata,
        asset_id: Optional[str] = None,
    ) -> SaveReceipt:
        """Create an asset, or store ``content`` as the new binary of ``asset_id``."""
        ...

    def get(self, asset_id: str) -> Asset:
        """Fetch the canonical record for ``asset_id``."""
        ...

    def close(self) -> None:
        """Release connections the store opened itself."""
        ...
