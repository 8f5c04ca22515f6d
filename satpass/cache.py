from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from .tle import ElementSet

DEFAULT_TTL = timedelta(hours=24)


@dataclass(frozen=True)
class CacheEntry:
	element_set: ElementSet
	fetched_at: datetime


class ElementSetCache:
	"""In-memory element sets keyed by object identifier.

	Entries are never evicted; staleness is judged by the reader with
	`is_fresh` at lookup time.
	"""

	def __init__(self, ttl: timedelta = DEFAULT_TTL):
		self.ttl = ttl
		self._entries: Dict[str, CacheEntry] = {}
		self._lock = threading.Lock()

	def get(self, object_id: str) -> Optional[CacheEntry]:
		with self._lock:
			return self._entries.get(object_id)

	def put(self, object_id: str, element_set: ElementSet, fetched_at: datetime) -> CacheEntry:
		entry = CacheEntry(element_set=element_set, fetched_at=fetched_at)
		with self._lock:
			self._entries[object_id] = entry
		return entry

	def is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
		return now - entry.fetched_at < self.ttl

	def clear(self) -> None:
		with self._lock:
			self._entries.clear()

	def __len__(self) -> int:
		with self._lock:
			return len(self._entries)
