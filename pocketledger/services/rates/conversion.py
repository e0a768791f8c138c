from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Iterable, Mapping, Optional

from pocketledger.models.constants import CRYPTO_UPSTREAM_IDS
from pocketledger.models.currency import CurrencyKind, CurrencyRecord
from pocketledger.models.rates import RateTable
from pocketledger.services.money import Number, to_decimal
from .base import RateFetchError
from .cache_service import RateCache
from .providers import RateProvider

"""Currency conversion routed through a fixed pivot currency.

Cached rates follow two conventions:
    - fiat:   units of X per 1 pivot unit   (EUR 0.92 means 1 USD = 0.92 EUR)
    - crypto: pivot units per 1 coin        (BTC 65000 means 1 BTC = 65000 USD)

so fiat legs divide on the way into the pivot and multiply on the way out,
and crypto legs do the opposite.

A missing cache or missing rate never raises: no source rate gives 0, no
target rate gives the pivot amount. That is fine for display and must not be
used to persist a transfer's target amount without the user confirming it.
"""

ZERO = Decimal("0")

logger = logging.getLogger("pocketledger.rates")

KindLookup = Callable[[str], Optional[CurrencyKind]]


def _default_kind(code: str) -> CurrencyKind:
    return CurrencyKind.CRYPTO if code in CRYPTO_UPSTREAM_IDS else CurrencyKind.FIAT


class CurrencyConverter:
    def __init__(
        self,
        cache: RateCache,
        provider: RateProvider,
        kind_lookup: Optional[KindLookup] = None,
        pivot: str = "USD",
    ):
        self._cache = cache
        self._provider = provider
        self._kind_lookup = kind_lookup
        self.pivot = pivot.upper()

    @property
    def cache(self) -> RateCache:
        return self._cache

    def kind_of(self, code: str) -> CurrencyKind:
        kind = self._kind_lookup(code) if self._kind_lookup else None
        return kind or _default_kind(code)

    # Internal --------------------------------------------------
    def _rate(self, code: str, rates: RateTable) -> Optional[Decimal]:
        rate = rates.get(code)
        if not rate or rate <= 0:
            logger.debug("no cached rate for %s", code)
            return None
        return Decimal(str(rate))

    def _to_pivot(self, amount: Decimal, code: str, rates: RateTable) -> Optional[Decimal]:
        if code == self.pivot:
            return amount
        rate = self._rate(code, rates)
        if rate is None:
            return None
        if self.kind_of(code) is CurrencyKind.CRYPTO:
            return amount * rate
        return amount / rate

    def _from_pivot(self, amount: Decimal, code: str, rates: RateTable) -> Optional[Decimal]:
        if code == self.pivot:
            return amount
        rate = self._rate(code, rates)
        if rate is None:
            return None
        if self.kind_of(code) is CurrencyKind.CRYPTO:
            return amount / rate
        return amount * rate

    # Public API -----------------------------------------------
    def convert(self, amount: Number, from_code: str, to_code: str) -> Decimal:
        value = to_decimal(amount)
        from_code, to_code = from_code.upper(), to_code.upper()
        if from_code == to_code:
            return value
        rates = self._cache.load()
        if rates is None:
            logger.debug("no cached rates; %s->%s converts to 0", from_code, to_code)
            return ZERO
        in_pivot = self._to_pivot(value, from_code, rates)
        if in_pivot is None:
            return ZERO
        out = self._from_pivot(in_pivot, to_code, rates)
        return in_pivot if out is None else out

    def convert_to_base(self, amounts_by_currency: Mapping[str, Number], base: str) -> Decimal:
        """Total of ``{currency_code: amount}`` expressed in ``base``."""
        total = ZERO
        for code, amount in amounts_by_currency.items():
            total += self.convert(amount, code, base)
        return total

    async def refresh_rates(self, currencies: Iterable[CurrencyRecord]) -> RateTable:
        """Fetch fresh rates against the pivot and overwrite the cache.

        Raises `RateFetchError` when every upstream failed; the cache is left
        untouched in that case.
        """
        try:
            rates = await self._provider.fetch_rates(list(currencies), base=self.pivot)
        except RateFetchError as e:
            logger.warning("rate refresh failed, keeping cached table: %s", e)
            raise
        self._cache.save(rates)
        return rates

    async def refresh_rates_if_needed(self, currencies: Iterable[CurrencyRecord]) -> bool:
        if not self._cache.needs_refresh:
            return False
        await self.refresh_rates(currencies)
        return True
