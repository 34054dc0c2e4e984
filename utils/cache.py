"""In-memory result store for simulation and analysis outputs."""

from typing import Any, Dict, Optional, Tuple
from datetime import datetime
import hashlib
import json
import asyncio


class ResultStore:
    """
    Async-safe in-memory store with TTL.

    One instance is created at process start (see ``main.lifespan``) and
    handed to the components that need it. There is no module-level
    instance; ``clear()`` is the only way to drop everything.
    """

    def __init__(self, default_ttl: int = 900, max_entries: int = 512):
        """
        Initialize store.

        Args:
            default_ttl: Default time-to-live in seconds
            max_entries: Oldest entries are evicted beyond this size
        """
        self._entries: Dict[str, Tuple[Any, datetime, int]] = {}
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._lock = asyncio.Lock()

    @staticmethod
    def make_key(*args, **kwargs) -> str:
        """Create a stable key from arguments."""
        key_data = {
            "args": args,
            "kwargs": kwargs
        }
        key_string = json.dumps(key_data, sort_keys=True, default=str)
        return hashlib.md5(key_string.encode()).hexdigest()

    async def get(self, key: str) -> Optional[Any]:
        """Get value from store, or None if missing or expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, stored_at, ttl = entry
            if (datetime.now() - stored_at).total_seconds() > ttl:
                del self._entries[key]
                return None

            return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None):
        """Set value in store."""
        async with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (value, datetime.now(), ttl or self.default_ttl)

            # dicts keep insertion order, so the first key is the oldest
            while len(self._entries) > self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    async def delete(self, key: str):
        """Delete value from store."""
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> int:
        """Clear all entries and return how many were dropped."""
        async with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            return dropped

    @property
    def size(self) -> int:
        return len(self._entries)
