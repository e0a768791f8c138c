from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pocketledger.models import CurrencyKind, CurrencyRecord
from pocketledger.services.http_client import HttpError, PayloadError
from pocketledger.services.rates.base import DecodeError, RateFetchError, TransportError
from pocketledger.services.rates.cache_service import RATES_TABLE_KEY, RateCache
from pocketledger.services.rates.conversion import CurrencyConverter
from pocketledger.services.rates.providers import (
    CryptoRateSource,
    FiatRateSource,
    RateProvider,
    build_rate_provider,
)

from .conftest import CRYPTO_PAYLOAD, FIAT_PAYLOAD, StubFetcher

FIAT_URL = "https://fiat.test/v4"
CRYPTO_URL = "https://crypto.test/api/v3"


def fiat(code):
    return CurrencyRecord(code=code, symbol=code, kind=CurrencyKind.FIAT)


def crypto(code):
    return CurrencyRecord(code=code, symbol=code, kind=CurrencyKind.CRYPTO)


def provider_for(fetcher):
    return RateProvider(
        fiat=FiatRateSource(FIAT_URL, fetcher=fetcher),
        crypto=CryptoRateSource(CRYPTO_URL, fetcher=fetcher),
    )


class Clock:
    def __init__(self):
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


# Sources ---------------------------------------------------------


@pytest.mark.asyncio
async def test_fiat_source_keeps_requested_codes():
    fetcher = StubFetcher({"/latest/USD": FIAT_PAYLOAD})
    rates = await FiatRateSource(FIAT_URL, fetcher=fetcher).fetch(["USD", "EUR", "GBP"], "usd")
    assert rates == {"USD": 1.0, "EUR": 0.92, "GBP": 0.79}
    assert fetcher.calls == [f"{FIAT_URL}/latest/USD"]


@pytest.mark.asyncio
async def test_fiat_source_without_rates_is_decode_error():
    fetcher = StubFetcher({"/latest/": {"result": "error"}})
    with pytest.raises(DecodeError):
        await FiatRateSource(FIAT_URL, fetcher=fetcher).fetch(["EUR"], "USD")


@pytest.mark.asyncio
async def test_crypto_source_skips_unmapped_codes():
    fetcher = StubFetcher({"/simple/price": CRYPTO_PAYLOAD})
    rates = await CryptoRateSource(CRYPTO_URL, fetcher=fetcher).fetch(
        ["BTC", "ETH", "NOTACOIN"], "USD"
    )
    assert rates == {"BTC": 65000.0, "ETH": 3200.5}
    assert fetcher.calls == [
        f"{CRYPTO_URL}/simple/price?ids=bitcoin,ethereum&vs_currencies=usd"
    ]


@pytest.mark.asyncio
async def test_crypto_source_with_nothing_mapped_makes_no_request():
    fetcher = StubFetcher()
    rates = await CryptoRateSource(CRYPTO_URL, fetcher=fetcher).fetch(["NOTACOIN"], "USD")
    assert rates == {}
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_transport_and_payload_failures_are_classified():
    transport = StubFetcher({"/latest/": HttpError("HTTP 503")})
    with pytest.raises(TransportError):
        await FiatRateSource(FIAT_URL, fetcher=transport).fetch(["EUR"], "USD")
    payload = StubFetcher({"/latest/": PayloadError("invalid JSON")})
    with pytest.raises(DecodeError):
        await FiatRateSource(FIAT_URL, fetcher=payload).fetch(["EUR"], "USD")


@pytest.mark.asyncio
async def test_malformed_url_is_a_value_error():
    with pytest.raises(ValueError):
        await FiatRateSource("not a url", fetcher=StubFetcher()).fetch(["EUR"], "USD")


# Provider --------------------------------------------------------


@pytest.mark.asyncio
async def test_provider_merges_fiat_and_crypto():
    fetcher = StubFetcher({"/latest/USD": FIAT_PAYLOAD, "/simple/price": CRYPTO_PAYLOAD})
    rates = await provider_for(fetcher).fetch_rates(
        [fiat("USD"), fiat("EUR"), crypto("BTC")], base="USD"
    )
    assert rates == {"USD": 1.0, "EUR": 0.92, "BTC": 65000.0}


@pytest.mark.asyncio
async def test_provider_partial_success_drops_failed_source():
    fetcher = StubFetcher(
        {"/latest/USD": FIAT_PAYLOAD, "/simple/price": HttpError("timed out")}
    )
    rates = await provider_for(fetcher).fetch_rates(
        [fiat("USD"), fiat("EUR"), crypto("BTC"), crypto("ETH")]
    )
    assert rates == {"USD": 1.0, "EUR": 0.92}


@pytest.mark.asyncio
async def test_provider_raises_when_every_source_fails():
    fetcher = StubFetcher(
        {"/latest/": HttpError("offline"), "/simple/price": PayloadError("garbage")}
    )
    with pytest.raises(RateFetchError):
        await provider_for(fetcher).fetch_rates([fiat("EUR"), crypto("BTC")])


@pytest.mark.asyncio
async def test_provider_with_only_unmapped_crypto_succeeds_empty():
    fetcher = StubFetcher()
    rates = await provider_for(fetcher).fetch_rates([crypto("NOTACOIN")])
    assert rates == {}


# Cache -----------------------------------------------------------


def test_cache_staleness_follows_ttl(db):
    clock = Clock()
    cache = RateCache(db, clock=clock)
    assert cache.needs_refresh
    cache.save({"USD": 1.0, "EUR": 0.92})
    assert not cache.needs_refresh
    assert cache.fetched_at == clock.now
    clock.now += timedelta(hours=6)
    assert not cache.needs_refresh
    clock.now += timedelta(seconds=1)
    assert cache.needs_refresh
    assert cache.load() == {"USD": 1.0, "EUR": 0.92}


def test_cache_save_overwrites_whole_table(db):
    cache = RateCache(db)
    cache.save({"USD": 1.0, "EUR": 0.92})
    cache.save({"USD": 1.0, "GBP": 0.79})
    assert cache.load() == {"USD": 1.0, "GBP": 0.79}


def test_corrupt_cache_reads_as_empty(db):
    cache = RateCache(db)
    cache.save({"EUR": 0.92})
    db.set_value(RATES_TABLE_KEY, "{not json")
    assert cache.load() is None
    assert cache.needs_refresh
    cache.clear()
    assert cache.fetched_at is None


# Converter -------------------------------------------------------


@pytest.fixture
def converter(db, settings):
    cache = RateCache(db)
    cache.save({"USD": 1.0, "EUR": 0.92, "JPY": 150.0, "BTC": 65000.0})
    return CurrencyConverter(cache, build_rate_provider(settings, fetcher=StubFetcher()))


@pytest.mark.parametrize("amount", ["0", "1", "-42.5", "123456.789"])
def test_convert_identity(converter, amount):
    assert converter.convert(amount, "USD", "USD") == Decimal(amount)
    assert converter.convert(amount, "btc", "BTC") == Decimal(amount)


def test_convert_fiat_and_crypto_directions(converter):
    assert converter.convert(100, "USD", "EUR") == Decimal("92")
    assert converter.convert(92, "EUR", "USD") == Decimal("100")
    assert converter.convert(1, "BTC", "USD") == Decimal("65000")
    assert converter.convert(1, "BTC", "EUR") == Decimal("59800")
    assert converter.convert(6500, "USD", "BTC") == Decimal("0.1")


def test_convert_round_trip_within_epsilon(converter):
    x = Decimal("123.45")
    back = converter.convert(converter.convert(x, "USD", "EUR"), "EUR", "USD")
    assert abs(back - x) < Decimal("1e-12")
    back = converter.convert(converter.convert(x, "JPY", "BTC"), "BTC", "JPY")
    assert abs(back - x) < Decimal("1e-12")


def test_convert_degrades_on_missing_rates(converter):
    assert converter.convert(10, "GBP", "USD") == Decimal("0")
    assert converter.convert(10, "USD", "GBP") == Decimal("10")
    assert converter.convert(92, "EUR", "GBP") == Decimal("100")


def test_convert_without_cache_gives_zero(db, settings):
    converter = CurrencyConverter(RateCache(db), build_rate_provider(settings, fetcher=StubFetcher()))
    assert converter.convert(10, "USD", "EUR") == Decimal("0")
    assert converter.convert(10, "EUR", "EUR") == Decimal("10")


def test_convert_to_base_sums_mixed_currencies(converter):
    total = converter.convert_to_base({"USD": 100, "EUR": 92, "BTC": "0.001"}, "USD")
    assert total == Decimal("265")


@pytest.mark.asyncio
async def test_refresh_rates_fills_cache(db, settings):
    fetcher = StubFetcher({"/latest/USD": FIAT_PAYLOAD, "/simple/price": CRYPTO_PAYLOAD})
    converter = CurrencyConverter(RateCache(db), build_rate_provider(settings, fetcher=fetcher))
    currencies = db.list_currencies()

    assert await converter.refresh_rates_if_needed(currencies)
    table = converter.cache.load()
    assert table["USD"] == 1.0
    assert table["EUR"] == 0.92
    assert table["BTC"] == 65000.0
    assert "XYZ" not in table
    assert not await converter.refresh_rates_if_needed(currencies)
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_failed_refresh_keeps_old_table(db, settings):
    fetcher = StubFetcher({"/latest/": HttpError("offline"), "/simple/price": HttpError("offline")})
    cache = RateCache(db)
    cache.save({"EUR": 0.9})
    converter = CurrencyConverter(cache, build_rate_provider(settings, fetcher=fetcher))
    with pytest.raises(RateFetchError):
        await converter.refresh_rates(db.list_currencies())
    assert cache.load() == {"EUR": 0.9}
