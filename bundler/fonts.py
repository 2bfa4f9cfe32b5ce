"""
Font providers. A provider is any zero-argument callable returning the
bytes of an embeddable font, or None when no font could be obtained.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import requests

from bundler.config import FONT_PATH, FONT_TIMEOUT, FONT_URL

logger = logging.getLogger(__name__)

FontProvider = Callable[[], Optional[bytes]]


class RemoteFontProvider:
    """
    Download a font once and keep the outcome. A failed fetch is logged, not
    raised, and is remembered until refresh() is called.
    """

    def __init__(self, url: str = FONT_URL, timeout: float = FONT_TIMEOUT):
        self.url = url
        self.timeout = timeout
        self._data: Optional[bytes] = None
        self._fetched = False

    def __call__(self) -> Optional[bytes]:
        if not self._fetched:
            self._data = self._fetch()
            self._fetched = True
        return self._data

    def refresh(self) -> Optional[bytes]:
        self._fetched = False
        return self()

    def _fetch(self) -> Optional[bytes]:
        try:
            resp = requests.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Failed to load font from %s: %s", self.url, exc)
            return None

        if not resp.content:
            logger.warning("Font response from %s was empty", self.url)
            return None
        logger.info("Loaded font from %s (%d bytes)", self.url, len(resp.content))
        return resp.content


class FileFontProvider:
    def __init__(self, path):
        self.path = Path(path)

    def __call__(self) -> Optional[bytes]:
        try:
            return self.path.read_bytes()
        except OSError as exc:
            logger.warning("Failed to read font %s: %s", self.path, exc)
            return None


class StaticFontProvider:
    def __init__(self, data: Optional[bytes]):
        self.data = data

    def __call__(self) -> Optional[bytes]:
        return self.data


def default_provider() -> FontProvider:
    """Local font file if configured, else the remote font, else nothing."""
    if FONT_PATH:
        return FileFontProvider(FONT_PATH)
    if FONT_URL:
        return RemoteFontProvider(FONT_URL, FONT_TIMEOUT)
    return StaticFontProvider(None)
