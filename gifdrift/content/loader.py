"""Asset fetching and the load boundary.

``fetch_asset`` returns raw bytes from a local path or an ``http(s)://`` URL
and raises :class:`FetchError` on any failure. :class:`AssetLoader` is the
load boundary: it fetches, decodes and hands a new FrameStore to a callback,
catching FetchError/DecodeError so a failed load only aborts that attempt.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

import requests

from .frames import DecodeError, FrameStore, decode

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0


class FetchError(Exception):
    """Asset could not be retrieved (non-success response, network error, missing file)."""

    def __init__(self, message: str, *, source: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.status = status


def is_url(source: str) -> bool:
    return urlparse(str(source)).scheme in ("http", "https")


def fetch_asset(source: str | Path, *, timeout: float = DEFAULT_TIMEOUT_S,
                session: Optional[requests.Session] = None) -> bytes:
    """Return the raw bytes of *source*.

    Raises:
        FetchError: On a non-2xx status, a transport error or an unreadable file
    """
    text = str(source)
    if is_url(text):
        http = session or requests
        try:
            response = http.get(text, timeout=timeout)
        except requests.RequestException as e:
            raise FetchError(f"Request for {text} failed: {e}", source=text) from e
        if not response.ok:
            raise FetchError(f"HTTP error! status: {response.status_code}",
                             source=text, status=response.status_code)
        return response.content

    path = Path(text)
    try:
        return path.read_bytes()
    except OSError as e:
        raise FetchError(f"Cannot read {path}: {e}", source=text) from e


class AssetLoader:
    """Fetch + decode with errors contained at this boundary.

    Args:
        on_loaded: Called with each successfully decoded FrameStore
        timeout: HTTP timeout in seconds
    """

    def __init__(self, on_loaded: Optional[Callable[[FrameStore], None]] = None,
                 *, timeout: float = DEFAULT_TIMEOUT_S,
                 session: Optional[requests.Session] = None):
        self.on_loaded = on_loaded
        self.timeout = timeout
        self.session = session
        self.last_error: Optional[Exception] = None
        self.current: Optional[FrameStore] = None

    def load(self, source: str | Path) -> Optional[FrameStore]:
        """Load *source*; return the new FrameStore or None when the attempt failed."""
        try:
            data = fetch_asset(source, timeout=self.timeout, session=self.session)
            store = decode(data, source=str(source))
        except FetchError as e:
            self.last_error = e
            logger.error("[loader] fetch failed for %s: %s", source, e)
            return None
        except DecodeError as e:
            self.last_error = e
            logger.error("[loader] decode failed for %s: %s", source, e)
            return None

        self.last_error = None
        self.current = store
        if self.on_loaded is not None:
            self.on_loaded(store)
        return store
