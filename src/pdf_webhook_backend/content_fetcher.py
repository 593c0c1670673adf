"""
Loads the content a printable page is built from.

The primary entry is looked up by slug through the Delivery API. Related
conditions and treatments may be ordinary links (resolved from the response
``includes``) or resource links into another space (resolved by parsing the
resource name and fetching the entry from that space).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .contentful import ContentfulDeliveryClient, ContentfulError
from .models import PageContent
from .urn import MalformedUrnError, parse_urn
from .utils import dig

logger = logging.getLogger(__name__)

RELATED_FIELDS = {
    "related_conditions": "relatedConditions",
    "related_treatments": "relatedTreatments",
}


class ContentFetcher:
    def __init__(
        self,
        client: ContentfulDeliveryClient,
        space_id: str,
        environment: str,
        content_type: str = "patientEducation",
    ) -> None:
        self.client = client
        self.space_id = space_id
        self.environment = environment
        self.content_type = content_type

    def close(self) -> None:
        self.client.close()

    def fetch_page(self, slug: str, locale: Optional[str] = None) -> Optional[PageContent]:
        query: Dict[str, Any] = {
            "content_type": self.content_type,
            "limit": 1,
            "include": 2,
            "fields.slug": slug,
        }
        if locale:
            query["locale"] = locale

        response = self.client.get_entries(self.space_id, self.environment, query)
        items = response.get("items") or []
        if not items:
            logger.info(f"No {self.content_type} entry found for slug '{slug}'")
            return None

        entry = items[0]
        included = {
            item["sys"]["id"]: item
            for item in dig(response, "includes", "Entry") or []
            if dig(item, "sys", "id")
        }
        related = {
            name: self.resolve_links(entry.get("fields", {}).get(field_name) or [], included)
            for name, field_name in RELATED_FIELDS.items()
        }
        return PageContent(entry=entry, **related)

    def resolve_links(self, links: List[Dict[str, Any]], included: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Resolve a list of links, dropping those that cannot be dereferenced."""
        resolved = []
        for link in links:
            entry = self._resolve_link(link, included)
            if entry is not None:
                resolved.append(entry)
        return resolved

    def _resolve_link(self, link: Dict[str, Any], included: Dict[str, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        link_type = dig(link, "sys", "type")
        if link_type == "ResourceLink":
            return self.fetch_by_urn(dig(link, "sys", "urn") or "")
        if link_type == "Link":
            entry_id = dig(link, "sys", "id")
            entry = included.get(entry_id)
            if entry is None:
                logger.warning(f"Linked entry {entry_id} missing from includes")
            return entry
        return link

    def fetch_by_urn(self, urn: str) -> Optional[Dict[str, Any]]:
        try:
            coordinates = parse_urn(urn)
            return self.client.get_entry(coordinates.space, coordinates.environment, coordinates.entry_id)
        except MalformedUrnError as exc:
            logger.error(f"Invalid URN format: {exc.urn}")
        except ContentfulError as exc:
            logger.error(f"Failed to fetch entry by URN {urn}: {exc}")
        return None
