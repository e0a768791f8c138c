from __future__ import annotations

"""Rate source abstraction and the failures a rate fetch can end in.

Every source returns rates relative to the pivot currency for the codes it
was asked about and silently leaves out codes it cannot price.
"""
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, Any

from pocketledger.models.rates import RateTable

# url, timeout -> decoded JSON. Swapped for a stub in tests.
JsonFetcher = Callable[..., Awaitable[Any]]


class RateFetchError(Exception):
    """A rate sub-fetch failed. Retry on the next refresh window."""


class TransportError(RateFetchError):
    """Timeout, connectivity problem or non-2xx response."""


class DecodeError(RateFetchError):
    """The upstream answered with a payload we could not read."""


class RateSource(ABC):
    name: str = "source"

    @abstractmethod
    async def fetch(self, codes: Iterable[str], base: str) -> RateTable:
        """Return ``{code: rate}`` for the requested codes this source knows."""
        raise NotImplementedError
