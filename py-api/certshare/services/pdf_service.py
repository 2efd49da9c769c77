"""Certificate preview rendering.

The session only needs "draw page 1 of the document at this URL into a
surface at this scale". ``PdfRenderer`` is that contract; ``PypdfRenderer``
is the default implementation, which downloads the document with httpx and
extracts its first page with pypdf.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Protocol

import httpx
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from certshare.errors import RenderError

_LOGGER = logging.getLogger(__name__)

PREVIEW_SCALE = 1.5
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0


@dataclass
class PreviewSurface:
    """Drawing target for the certificate preview."""

    pdf_bytes: Optional[bytes] = None
    width: float = 0.0
    height: float = 0.0

    @property
    def drawn(self) -> bool:
        return self.pdf_bytes is not None


class PdfRenderer(Protocol):
    def render(self, document_url: str, surface: PreviewSurface, scale: float) -> None:
        """Draw page 1 of ``document_url`` into ``surface``; raise RenderError on failure."""
        ...


def fetch_timeout_seconds() -> float:
    try:
        return float(os.getenv("PDF_FETCH_TIMEOUT_SECONDS", DEFAULT_FETCH_TIMEOUT_SECONDS))
    except ValueError:
        return DEFAULT_FETCH_TIMEOUT_SECONDS


class PypdfRenderer:
    """Renders the first page of a remote PDF into a single-page document."""

    def __init__(self, client: Optional[httpx.Client] = None) -> None:
        self._client = client

    def _download(self, document_url: str) -> bytes:
        try:
            if self._client is not None:
                response = self._client.get(document_url, follow_redirects=True)
            else:
                with httpx.Client(timeout=fetch_timeout_seconds()) as client:
                    response = client.get(document_url, follow_redirects=True)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise RenderError(f"Unable to fetch certificate document: {exc}") from exc
        return response.content

    def render(self, document_url: str, surface: PreviewSurface, scale: float = PREVIEW_SCALE) -> None:
        raw = self._download(document_url)

        try:
            reader = PdfReader(BytesIO(raw))
            if not reader.pages:
                raise RenderError("Certificate document has no pages")
            page = reader.pages[0]
            width = float(page.mediabox.width)
            height = float(page.mediabox.height)

            writer = PdfWriter()
            writer.add_page(page)
            buffer = BytesIO()
            writer.write(buffer)
        except (PyPdfError, ValueError, KeyError) as exc:
            raise RenderError(f"Unable to read certificate document: {exc}") from exc

        surface.pdf_bytes = buffer.getvalue()
        surface.width = width * scale
        surface.height = height * scale
        _LOGGER.debug("Rendered certificate preview %s (%.0fx%.0f)", document_url, surface.width, surface.height)
