# src/dealengine/domain/ports.py
from __future__ import annotations

from typing import Any, Protocol

from dealengine.domain.comps import CompQuery


# ----------------------------
# Field resolution (host-owned inputs)
# ----------------------------

class FieldResolver(Protocol):
    def get(self, name: str, default: Any = None) -> Any:
        ...

    def set(self, name: str, value: Any) -> None:
        ...

    def get_ref(self, name: str) -> str | None:
        ...


# ----------------------------
# Cache backing store
# ----------------------------

class CacheStore(Protocol):
    """
    Raw key/value store with its own retention. The comp cache layers its
    freshness check on top; a store may evict earlier or later than that.
    """

    def get(self, key: str) -> str | None:
        ...

    def put(self, key: str, value: str, ttl_s: int) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def remove_prefix(self, prefix: str) -> int:
        ...


# ----------------------------
# Comp providers
# ----------------------------

class CompProvider(Protocol):
    name: str

    def fetch(self, query: CompQuery, timeout_s: float) -> Any:
        """Return the provider's raw response wrapped in its ProviderResponse type."""
        ...
