from __future__ import annotations

"""Concrete rate sources and the provider that merges them.

- FiatRateSource: exchangerate-api style `GET {base}/latest/{CODE}` returning
  `{base, date, rates: {code: units per 1 base}}`.
- CryptoRateSource: CoinGecko style `GET {base}/simple/price?ids=..&vs_currencies=usd`
  returning `{coin_id: {usd: price}}`; codes are mapped to coin ids through a
  static table and unmapped codes are skipped.
- RateProvider: runs both concurrently and keeps whatever succeeded.
"""
import asyncio
import logging
from typing import Any, Iterable, List, Optional, Tuple

from pocketledger.core.config import Settings
from pocketledger.models.constants import CRYPTO_UPSTREAM_IDS, UPSTREAM_ID_TO_CRYPTO_CODE
from pocketledger.models.currency import CurrencyKind, CurrencyRecord
from pocketledger.models.rates import RateTable
from pocketledger.services.http_client import (
    HttpError,
    PayloadError,
    fetch_json,
    validate_url,
)
from .base import DecodeError, JsonFetcher, RateFetchError, RateSource, TransportError

logger = logging.getLogger("pocketledger.rates")


def _as_rate(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


class _HttpSource(RateSource):
    def __init__(self, base_url: str, *, timeout: float = 10.0, fetcher: JsonFetcher = fetch_json):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._fetcher = fetcher

    async def _get(self, url: str) -> Any:
        validate_url(url)
        try:
            return await self._fetcher(url, timeout=self._timeout)
        except PayloadError as e:
            raise DecodeError(f"{self.name}: {e}") from e
        except HttpError as e:
            raise TransportError(f"{self.name}: {e}") from e


class FiatRateSource(_HttpSource):
    name = "fiat"

    async def fetch(self, codes: Iterable[str], base: str) -> RateTable:
        wanted = {c.upper() for c in codes}
        data = await self._get(f"{self._base_url}/latest/{base.upper()}")
        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict):
            raise DecodeError(f"{self.name}: response has no rates object")
        out: RateTable = {}
        for code, value in rates.items():
            rate = _as_rate(value)
            if code in wanted and rate is not None:
                out[code] = rate
        return out


class CryptoRateSource(_HttpSource):
    name = "crypto"

    async def fetch(self, codes: Iterable[str], base: str) -> RateTable:
        coin_ids = sorted({CRYPTO_UPSTREAM_IDS[c.upper()] for c in codes if c.upper() in CRYPTO_UPSTREAM_IDS})
        if not coin_ids:
            return {}
        vs = base.lower()
        data = await self._get(
            f"{self._base_url}/simple/price?ids={','.join(coin_ids)}&vs_currencies={vs}"
        )
        if not isinstance(data, dict):
            raise DecodeError(f"{self.name}: expected an object keyed by coin id")
        out: RateTable = {}
        for coin_id, prices in data.items():
            code = UPSTREAM_ID_TO_CRYPTO_CODE.get(coin_id)
            if code is None or not isinstance(prices, dict):
                continue
            price = _as_rate(prices.get(vs))
            if price is not None:
                out[code] = price
        return out


class RateProvider:
    """Fetch a rate table for a set of currencies from fiat and crypto upstreams.

    Fiat rates are "units of X per 1 pivot"; crypto rates are "pivot units per
    1 coin". A failure of one upstream only drops its codes from the table;
    `RateFetchError` is raised only when every upstream that was queried failed.
    """

    def __init__(self, fiat: RateSource, crypto: RateSource, pivot: str = "USD"):
        self._fiat = fiat
        self._crypto = crypto
        self.pivot = pivot.upper()

    async def fetch_rates(
        self, currencies: Iterable[CurrencyRecord], base: Optional[str] = None
    ) -> RateTable:
        base = (base or self.pivot).upper()
        fiat_codes: List[str] = []
        crypto_codes: List[str] = []
        for currency in currencies:
            if currency.kind is CurrencyKind.CRYPTO:
                crypto_codes.append(currency.code)
            else:
                fiat_codes.append(currency.code)

        rates: RateTable = {}
        if base in fiat_codes or base in crypto_codes:
            rates[base] = 1.0

        jobs: List[Tuple[RateSource, Any]] = []
        if fiat_codes:
            jobs.append((self._fiat, self._fiat.fetch(fiat_codes, base)))
        if crypto_codes:
            jobs.append((self._crypto, self._crypto.fetch(crypto_codes, self.pivot)))
        if not jobs:
            return rates

        results = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)
        errors: List[RateFetchError] = []
        for (source, _), result in zip(jobs, results):
            if isinstance(result, RateFetchError):
                logger.warning("%s rates unavailable: %s", source.name, result)
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                rates.update(result)
        if len(errors) == len(jobs):
            raise errors[0]
        logger.info(
            "fetched %s rates (%s of %s sources ok)", len(rates), len(jobs) - len(errors), len(jobs)
        )
        return rates


def build_rate_provider(settings: Settings, fetcher: JsonFetcher = fetch_json) -> RateProvider:
    timeout = settings.http_timeout_seconds
    return RateProvider(
        fiat=FiatRateSource(settings.fiat_api_base_url, timeout=timeout, fetcher=fetcher),
        crypto=CryptoRateSource(settings.crypto_api_base_url, timeout=timeout, fetcher=fetcher),
        pivot=settings.pivot_currency,
    )


__all__ = [
    "FiatRateSource",
    "CryptoRateSource",
    "RateProvider",
    "build_rate_provider",
]
