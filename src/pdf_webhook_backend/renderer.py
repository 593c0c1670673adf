"""
Headless-browser rendering of public pages to PDF.

The renderer is a pure function of the page URL: it launches Chromium through
Playwright, waits for the page to settle within a bounded navigation timeout,
prints it and closes the browser again. Failures come back as an unsuccessful
:class:`RenderResult` instead of an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .models import ErrorCode
from .utils import pdf_file_name

logger = logging.getLogger(__name__)

DEFAULT_MARGIN = {"top": "1cm", "right": "1cm", "bottom": "1cm", "left": "1cm"}


@dataclass
class RenderResult:
    success: bool
    file_name: Optional[str] = None
    buffer: Optional[bytes] = field(default=None, repr=False)
    error_code: Optional[ErrorCode] = None
    error: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.buffer or b"")


class PdfRenderer:
    def __init__(
        self,
        timeout_ms: int = 10_000,
        wait_until: str = "networkidle",
        paper_format: str = "A4",
        print_background: bool = True,
        margin: Optional[Dict[str, str]] = None,
        user_agent: Optional[str] = None,
        launch_args: Optional[List[str]] = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.wait_until = wait_until
        self.paper_format = paper_format
        self.print_background = print_background
        self.margin = dict(margin or DEFAULT_MARGIN)
        self.user_agent = user_agent
        self.launch_args = list(launch_args or [])

    def _failure(self, file_name: str, message: str) -> RenderResult:
        logger.error(f"PDF generation failed for {file_name}: {message}")
        return RenderResult(success=False, file_name=file_name, error_code=ErrorCode.RENDER_FAILED, error=message)

    def render(self, url: str, slug: str, file_name: Optional[str] = None) -> RenderResult:
        """
        Render ``url`` to PDF.

        Args:
            url: Fully-qualified page URL
            slug: Page slug, used to derive the file name
            file_name: Explicit file name overriding ``<slug>.pdf``

        Returns:
            RenderResult with the PDF bytes, or RENDER_FAILED with the browser's
            error message (navigation timeout, non-2xx page, empty output)
        """
        final_name = file_name or pdf_file_name(slug)
        logger.info(f"Starting PDF generation for slug '{slug}' from {url}")

        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=True, args=self.launch_args)
                try:
                    context = browser.new_context(user_agent=self.user_agent)
                    page = context.new_page()
                    response = page.goto(url, wait_until=self.wait_until, timeout=self.timeout_ms)
                    if response is not None and not response.ok:
                        return self._failure(final_name, f"Page {url} answered HTTP {response.status}")
                    buffer = page.pdf(
                        format=self.paper_format,
                        print_background=self.print_background,
                        margin=self.margin,
                    )
                finally:
                    browser.close()
        except PlaywrightError as exc:
            return self._failure(final_name, str(exc))

        if not buffer:
            return self._failure(final_name, f"Browser produced an empty PDF for {url}")

        logger.info(f"Generated {final_name} ({len(buffer)} bytes)")
        return RenderResult(success=True, file_name=final_name, buffer=bytes(buffer))
