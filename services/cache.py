"""
Bundle cache
An explicitly constructed TTL cache for resolved definitions, inventory verdicts
and price results. Each BundleService (or caller) owns its own instance, so
several store configurations never share entries.

Writes are last-writer-wins and unsynchronized; a reader may see a stale value
racing a fresh write.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from schemas.bundle_schemas import BundleDefinition, BundleSelection
from settings import DEFINITION_CACHE_TTL, INVENTORY_CACHE_TTL, PRICE_CACHE_TTL

logger = logging.getLogger(__name__)

DEFINITIONS = "definitions"
INVENTORY = "inventory"
PRICES = "prices"

NAMESPACES = (DEFINITIONS, INVENTORY, PRICES)

DEFAULT_TTLS: Dict[str, float] = {
    DEFINITIONS: DEFINITION_CACHE_TTL,
    INVENTORY: INVENTORY_CACHE_TTL,
    PRICES: PRICE_CACHE_TTL,
}

SNAPSHOT_VERSION = 1


@dataclass
class CacheEntry:
    value: Any
    stored_at: float  # seconds, from the cache clock
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


def selection_cache_key(bundle_id: str, selections: Optional[Iterable[BundleSelection]] = None) -> str:
    """
    Key for inventory/price entries.

    No selection collapses to the bare bundle id; otherwise the sorted
    ``variantId:quantity`` pairs are appended, so selection order is irrelevant.
    """
    pairs = sorted(f"{s.variant_id}:{s.quantity}" for s in (selections or ()))
    if not pairs:
        return bundle_id
    return f"{bundle_id}|{','.join(pairs)}"


class BundleCache:
    """Namespaced key/value store with per-entry TTL and lazy eviction."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        # Wall clock so snapshots stay meaningful across process restarts
        self._clock = clock or time.time
        self._store: Dict[str, Dict[str, CacheEntry]] = {ns: {} for ns in NAMESPACES}

    def _namespace(self, namespace: str) -> Dict[str, CacheEntry]:
        if namespace not in self._store:
            raise KeyError(f"Unknown cache namespace: {namespace}")
        return self._store[namespace]

    def get(self, namespace: str, key: str) -> Optional[Any]:
        entries = self._namespace(namespace)
        entry = entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del entries[key]
            logger.debug(f"Cache expired: {namespace}/{key}")
            return None
        logger.debug(f"Cache hit: {namespace}/{key}")
        return entry.value

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if ttl is None:
            ttl = DEFAULT_TTLS[namespace]
        self._namespace(namespace)[key] = CacheEntry(value=value, stored_at=self._clock(), ttl=ttl)

    def delete(self, namespace: str, key: str) -> None:
        self._namespace(namespace).pop(key, None)

    def clear(self) -> None:
        for entries in self._store.values():
            entries.clear()

    def clear_bundle(self, bundle_id: str, keep_definition: bool = False) -> None:
        """Drop every inventory/price entry for one bundle, and its definition unless kept."""
        if not keep_definition:
            self._store[DEFINITIONS].pop(bundle_id, None)
        prefix = f"{bundle_id}|"
        for namespace in (INVENTORY, PRICES):
            entries = self._store[namespace]
            for key in [k for k in entries if k == bundle_id or k.startswith(prefix)]:
                del entries[key]

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._store.values())

    # =========================================================================
    # Typed accessors
    # =========================================================================

    def get_definition(self, bundle_id: str) -> Optional[BundleDefinition]:
        return self.get(DEFINITIONS, bundle_id)

    def set_definition(self, bundle_id: str, definition: BundleDefinition, ttl: Optional[float] = None) -> None:
        self.set(DEFINITIONS, bundle_id, definition, ttl)

    # =========================================================================
    # Persistence
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        """
        JSON-serializable snapshot of unexpired definitions.

        Inventory and price verdicts are too short-lived to be worth persisting.
        """
        now = self._clock()
        definitions = {}
        for key, entry in self._store[DEFINITIONS].items():
            if entry.expired(now):
                continue
            definitions[key] = {
                "data": entry.value.to_dict(),
                "storedAt": entry.stored_at,
                "ttl": entry.ttl,
            }
        return {"version": SNAPSHOT_VERSION, "definitions": definitions}

    def restore(self, snapshot: Optional[Dict[str, Any]]) -> int:
        """Load unexpired definitions from ``snapshot``. Returns how many were restored."""
        if not snapshot:
            return 0
        now = self._clock()
        restored = 0
        for key, raw in (snapshot.get("definitions") or {}).items():
            try:
                entry = CacheEntry(
                    value=BundleDefinition.from_dict(raw["data"]),
                    stored_at=float(raw["storedAt"]),
                    ttl=float(raw["ttl"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed cache entry {key}: {e}")
                continue
            if entry.expired(now):
                continue
            self._store[DEFINITIONS][key] = entry
            restored += 1
        logger.info(f"Restored {restored} bundle definitions from snapshot")
        return restored
