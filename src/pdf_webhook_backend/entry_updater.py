"""
Writes the published PDF back into the source CMS entry.

The updater only ever touches one field of one content type. Entries of any
other type are refused before anything is written, so a misrouted webhook can
not corrupt unrelated content. The entry is saved but not published; the
management token used here must belong to the system actor so the resulting
change webhook is recognised and skipped by loop prevention.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .contentful import ContentfulError, ContentfulManagementClient
from .dam.base import Asset
from .models import AssetReference, ErrorCode
from .utils import dig

logger = logging.getLogger(__name__)


@dataclass
class LinkResult:
    success: bool
    entry_id: str
    entry_version: Optional[int] = None
    error_code: Optional[ErrorCode] = None
    error: Optional[str] = None


class EntryUpdater:
    def __init__(
        self,
        client: ContentfulManagementClient,
        content_type: str = "patientEducation",
        field_name: str = "pdf",
        locale: str = "en-US",
    ) -> None:
        self.client = client
        self.content_type = content_type
        self.field_name = field_name
        self.locale = locale

    def close(self) -> None:
        self.client.close()

    def _apply_link(self, entry: Dict[str, Any], reference: AssetReference) -> None:
        fields = entry.setdefault("fields", {})
        localized = dict(fields.get(self.field_name) or {})
        localized[self.locale] = [reference.to_sys()]
        fields[self.field_name] = localized

    def link(self, entry_id: str, space_id: str, environment: str, asset: Asset) -> LinkResult:
        """
        Point the entry's PDF field at ``asset``.

        Args:
            entry_id: CMS entry to update
            space_id: Space that holds the entry
            environment: Environment within the space
            asset: Canonical asset record returned by the asset repository

        Returns:
            LinkResult; ``error_code`` is WRONG_CONTENT_TYPE, NOT_FOUND,
            VERSION_CONFLICT or LINK_FAILED when ``success`` is False
        """
        reference = AssetReference(id=asset.id)
        logger.info(f"Linking asset {asset.id} into entry {entry_id} ({space_id}/{environment})")
        try:
            entry = self.client.get_entry(space_id, environment, entry_id)
            found_type = dig(entry, "sys", "contentType", "sys", "id")
            if found_type != self.content_type:
                message = f"Entry {entry_id} is not a {self.content_type} content type. Found: {found_type}"
                logger.error(message)
                return LinkResult(success=False, entry_id=entry_id, error_code=ErrorCode.WRONG_CONTENT_TYPE, error=message)

            self._apply_link(entry, reference)
            updated = self.client.update_entry(space_id, environment, entry)
        except ContentfulError as exc:
            if exc.is_not_found:
                code = ErrorCode.NOT_FOUND
            elif exc.is_version_conflict:
                code = ErrorCode.VERSION_CONFLICT
            else:
                code = ErrorCode.LINK_FAILED
            logger.error(f"Failed to link asset {asset.id} to entry {entry_id}: {exc}")
            return LinkResult(success=False, entry_id=entry_id, error_code=code, error=str(exc))

        logger.info(f"Entry {entry_id} now links asset {asset.id} in field '{self.field_name}'")
        return LinkResult(success=True, entry_id=entry_id, entry_version=dig(updated, "sys", "version"))
