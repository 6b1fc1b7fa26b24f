"""
Caller-owned cache for compatibility analyses.

Entries are keyed by a hash of the phage features and scoring parameters,
so identical inputs map to the same key and any change yields a new one.
"""

import hashlib
import json
from typing import Any, Callable, Dict, Optional, Sequence

from phage_models import PhageFeatures, SimilarityMetric


def analysis_key(features: Sequence[PhageFeatures], **params) -> str:
    """
    Hash features plus parameters into a stable cache key.

    Parameters are encoded by value; enums use their string value and
    collections are sorted.
    """
    def encode(value):
        if isinstance(value, SimilarityMetric):
            return value.value
        if isinstance(value, (set, frozenset)):
            return sorted(value)
        return value

    payload = {
        "features": [f.to_dict() for f in features],
        "params": {name: encode(value) for name, value in sorted(params.items())},
    }
    encoded = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class AnalysisCache:
    """Key-value store with explicit invalidation; owned by the caller."""

    def __init__(self):
        self._entries: Dict[str, Any] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[Any]:
        """Cached value or None."""
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        return None

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def get_or_compute(self, key: str, compute: Callable[[], Any]) -> Any:
        """Return the cached value, computing and storing it on a miss."""
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        value = compute()
        self._entries[key] = value
        return value

    def invalidate(self, key: str) -> bool:
        """Drop one entry; returns whether it existed."""
        if key not in self._entries:
            return False
        del self._entries[key]
        return True

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0
