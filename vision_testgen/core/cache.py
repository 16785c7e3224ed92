from __future__ import annotations

from collections import OrderedDict
from typing import Optional
import threading

from vision_testgen.models.schemas import GenerationResult


class ResultCache:
    """In-memory store of generation results keyed by request fingerprint.

    - Optionally capacity-bounded; evicts the least recently used entry first.
    - ``max_entries=None`` keeps every entry for the lifetime of the instance.
    - Thread-safe using a simple lock, so provider executor threads and the
    event loop can share one instance.
    """

    def __init__(self, max_entries: Optional[int] = 256) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive or None")
        self._data: "OrderedDict[str, GenerationResult]" = OrderedDict()
        self._max = max_entries
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> Optional[int]:
        return self._max

    def get(self, fingerprint: str) -> Optional[GenerationResult]:
        with self._lock:
            result = self._data.get(fingerprint)
            if result is None:
                return None
            self._data.move_to_end(fingerprint)
            return result

    def put(self, fingerprint: str, result: GenerationResult) -> None:
        # Overwrites any earlier entry; forced regeneration relies on this
        with self._lock:
            self._data[fingerprint] = result
            self._data.move_to_end(fingerprint)
            if self._max is not None:
                while len(self._data) > self._max:
                    self._data.popitem(last=False)

    def clear(self, fingerprint: str) -> None:
        with self._lock:
            self._data.pop(fingerprint, None)

    def clear_all(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
