from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from pocketledger.models.rates import RateTable
from pocketledger.services.app_settings import KeyValueStore

"""Durable single-slot rate cache.

Purpose:
    Keep the last successfully fetched rate table and when it was fetched, so
    conversions keep working offline and the network is hit at most once per TTL.

Design:
    - Two metadata keys: the JSON encoded table and an ISO timestamp.
    - `save` overwrites both at once; the slot is never merged incrementally.
    - A missing or unreadable slot is treated as "no cache".
"""

RATES_TABLE_KEY = "rates_table"
RATES_FETCHED_AT_KEY = "rates_fetched_at"
DEFAULT_TTL = timedelta(hours=6)

logger = logging.getLogger("pocketledger.rates")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateSlotStore(KeyValueStore, Protocol):
    def set_values(self, values: dict[str, str]) -> None: ...

    def delete_values(self, *keys: str) -> None: ...


class RateCache:
    def __init__(
        self,
        store: RateSlotStore,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    # Internal --------------------------------------------------
    def _read_table(self) -> Optional[RateTable]:
        raw = self._store.get_value(RATES_TABLE_KEY)
        if not raw:
            return None
        try:
            obj = json.loads(raw)
        except ValueError:
            logger.warning("cached rate table is not valid JSON; ignoring it")
            return None
        if not isinstance(obj, dict):
            return None
        return {str(k): float(v) for k, v in obj.items() if isinstance(v, (int, float))}

    # Public API -----------------------------------------------
    @property
    def fetched_at(self) -> Optional[datetime]:
        raw = self._store.get_value(RATES_FETCHED_AT_KEY)
        if not raw:
            return None
        try:
            ts = datetime.fromisoformat(raw)
        except ValueError:
            return None
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)

    def load(self) -> Optional[RateTable]:
        return self._read_table()

    @property
    def needs_refresh(self) -> bool:
        fetched_at = self.fetched_at
        if fetched_at is None or self._read_table() is None:
            return True
        return self._clock() - fetched_at > self._ttl

    def save(self, rates: RateTable) -> None:
        self._store.set_values(
            {
                RATES_TABLE_KEY: json.dumps(rates, separators=(",", ":"), sort_keys=True),
                RATES_FETCHED_AT_KEY: self._clock().isoformat(),
            }
        )
        logger.debug("rate cache saved with %s entries", len(rates))

    def clear(self) -> None:
        self._store.delete_values(RATES_TABLE_KEY, RATES_FETCHED_AT_KEY)
