"""
Resource name parsing for cross-space content links.

Linked entries that live in another space are referenced by a resource name
rather than a plain entry id, e.g.::

    crn:contentful:::content:spaces/<space>/environments/<env>/entries/<entryId>

Splitting on ``/`` yields six segments; the space, environment and entry id sit
at positions 1, 3 and 5.
"""

from __future__ import annotations

from dataclasses import dataclass

URN_SCHEME = "crn:contentful:::content:spaces"
URN_SEGMENTS = 6


class MalformedUrnError(ValueError):
    """Raised when a resource name does not carry space, environment and entry id."""

    code = "MALFORMED_URN"

    def __init__(self, urn: str, message: str) -> None:
        super().__init__(f"{message}: {urn!r}")
        self.urn = urn


@dataclass(frozen=True)
class ResourceCoordinates:
    space: str
    environment: str
    entry_id: str


def parse_urn(urn: str) -> ResourceCoordinates:
    """
    Parse a resource name into its space, environment and entry id.

    Raises:
        MalformedUrnError: If fewer than six segments are present or any of
            the extracted coordinates is empty
    """
    parts = (urn or "").split("/")
    if len(parts) < URN_SEGMENTS:
        raise MalformedUrnError(urn, f"expected {URN_SEGMENTS} segments, found {len(parts)}")

    coordinates = ResourceCoordinates(space=parts[1], environment=parts[3], entry_id=parts[5])
    if not (coordinates.space and coordinates.environment and coordinates.entry_id):
        raise MalformedUrnError(urn, "space, environment and entry id must be non-empty")
    return coordinates


def build_urn(space: str, environment: str, entry_id: str, scheme: str = URN_SCHEME) -> str:
    """Build the resource name that ``parse_urn`` reads back into the same coordinates."""
    return f"{scheme}/{space}/environments/{environment}/entries/{entry_id}"
