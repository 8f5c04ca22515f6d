from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, Optional

import requests

from .config import DEFAULT_TLE_URL
from .errors import FetchError
from .utils import utc_now

if TYPE_CHECKING:
    from .cache import ElementSetCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElementSet:
    name: str
    line1: str
    line2: str


def parse_element_set(text: str) -> ElementSet:
    """
    Parse a single three-line element set (name, line 1, line 2).

    Column-level validation is left to the propagator.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) < 3:
        raise ValueError(
            f"expected 3 lines (name, line1, line2), got {len(lines)}"
        )
    return ElementSet(name=lines[0], line1=lines[1], line2=lines[2])


class ElementSetFetcher:
    """
    Return element sets by object identifier, preferring the cache.

    A cached set younger than the cache TTL is returned without network I/O.
    Otherwise the set is retrieved from the remote source, stored and returned.
    Concurrent fetches of the same identifier are serialised so only one of
    them reaches the network.
    """

    def __init__(
        self,
        cache: "ElementSetCache",
        url: str = DEFAULT_TLE_URL,
        timeout_sec: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cache = cache
        self.url = url
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.clock = clock
        self._key_locks: Dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    def _lock_for(self, object_id: str) -> threading.Lock:
        with self._key_locks_guard:
            return self._key_locks.setdefault(object_id, threading.Lock())

    def _cached(self, object_id: str) -> Optional[ElementSet]:
        entry = self.cache.get(object_id)
        if entry is not None and self.cache.is_fresh(entry, self.clock()):
            logger.debug("Element set cache hit for %s", object_id)
            return entry.element_set
        return None

    def _retrieve(self, object_id: str) -> ElementSet:
        try:
            logger.info("Fetching element set for %s from %s", object_id, self.url)
            resp = self.session.get(
                self.url,
                params={"CATNR": object_id, "FORMAT": "TLE"},
                timeout=self.timeout_sec,
            )
            resp.raise_for_status()
            return parse_element_set(resp.text)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Element set fetch failed for %s: %s", object_id, e)
            raise FetchError(f"Failed to fetch TLE data: {e}") from e

    def fetch(self, object_id: str) -> ElementSet:
        cached = self._cached(object_id)
        if cached is not None:
            return cached

        with self._lock_for(object_id):
            # Another request may have filled the cache while we waited
            cached = self._cached(object_id)
            if cached is not None:
                return cached
            element_set = self._retrieve(object_id)
            self.cache.put(object_id, element_set, self.clock())
            return element_set
