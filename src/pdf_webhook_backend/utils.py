"""
Utility functions for file naming and small value normalisation.

This module provides helper functions for:
- Deriving safe PDF file names from page slugs
- Splitting file names into stem and extension
- Reading nested values out of loosely shaped JSON payloads
- Producing UTC timestamps for outcome records
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# Pattern to match characters that are not safe for file names
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")


def sanitize_label(label: str, fallback: str) -> str:
    """
    Generate a file-name-safe label from user input.

    Args:
        label: The original label string to sanitize
        fallback: Default value to return if sanitization results in an empty string

    Returns:
        A file-name-safe label or the fallback value

    Example:
        >>> sanitize_label("Asthma Care!", "document")
        "Asthma-Care"
        >>> sanitize_label("@#$", "document")
        "document"
    """
    cleaned = SANITIZE_PATTERN.sub("-", label.strip())
    cleaned = cleaned.strip("-_.")
    return cleaned or fallback


def pdf_file_name(slug: str) -> str:
    """
    Build the PDF file name published for a page slug.

    Example:
        >>> pdf_file_name("asthma-care")
        "asthma-care.pdf"
    """
    return f"{sanitize_label(slug, fallback='document')}.pdf"


def split_extension(filename: str) -> tuple[str, str]:
    """
    Split a filename into stem and extension components.

    Args:
        filename: The filename to split (can include path)

    Returns:
        A tuple of (stem, extension) where extension excludes the dot

    Example:
        >>> split_extension("asthma-care.pdf")
        ("asthma-care", "pdf")
        >>> split_extension("notes")
        ("notes", "")
    """
    path = Path(filename)
    return path.stem, path.suffix.lstrip(".").lower()


def dig(data: Any, *keys: str) -> Optional[Any]:
    """
    Walk nested dictionaries and return the value at ``keys`` or None.

    Example:
        >>> dig({"sys": {"publishedBy": {"sys": {"id": "u1"}}}}, "sys", "publishedBy", "sys", "id")
        "u1"
    """
    current = data
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)
