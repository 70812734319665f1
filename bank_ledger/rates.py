"""
Base Rate Module

Sources for the central-bank base rate that loan pricing builds on. A source
returns the annual rate as a Decimal percentage or raises RateSourceError;
the loan protocol decides what to do on failure.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional
import threading
import time

import httpx

from .exceptions import RateSourceError
from .logging_config import get_logger

logger = get_logger("bank_ledger.rates")


class RateSource(ABC):
    """Provider of the current annual base rate (percent)"""

    @abstractmethod
    def get_base_rate(self) -> Decimal:
        """
        Returns:
            Annual base rate as a percentage, e.g. Decimal("16.0")

        Raises:
            RateSourceError: If the rate cannot be obtained
        """


class FixedRateSource(RateSource):
    """Always returns the configured rate"""

    def __init__(self, rate: Decimal):
        self.rate = Decimal(rate)

    def get_base_rate(self) -> Decimal:
        return self.rate


class HttpRateSource(RateSource):
    """
    Fetches the base rate from an HTTP endpoint returning ``{"rate": "16.0"}``.

    Every request is bounded by ``timeout`` so a slow upstream cannot stall a
    loan application indefinitely.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 2.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.url = url
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def get_base_rate(self) -> Decimal:
        try:
            response = self._client.get(self.url)
        except httpx.HTTPError as e:
            raise RateSourceError(f"Base rate request failed: {e}")

        if response.status_code != 200:
            raise RateSourceError(f"Base rate endpoint returned {response.status_code}")

        try:
            data = response.json()
            rate = Decimal(str(data["rate"]))
        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            raise RateSourceError(f"Malformed base rate response: {e}")

        if not rate.is_finite() or rate < 0:
            raise RateSourceError(f"Invalid base rate value: {rate}")

        return rate

    def close(self):
        """Close the HTTP client"""
        self._client.close()


class CachedRateSource(RateSource):
    """
    Caches another source's rate for ``ttl_seconds``.

    The cache has its own lock, independent of the ledger lock. Failures are
    not cached: the next call asks the wrapped source again.
    """

    def __init__(
        self,
        source: RateSource,
        ttl_seconds: int = 3600,
        clock: Optional[Callable[[], float]] = None
    ):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._rate: Optional[Decimal] = None
        self._fetched_at: Optional[float] = None

    def get_base_rate(self) -> Decimal:
        with self._lock:
            now = self._clock()
            if self._rate is not None and now - self._fetched_at < self.ttl_seconds:
                return self._rate

            rate = self.source.get_base_rate()
            self._rate = rate
            self._fetched_at = now
            logger.debug(f"Base rate refreshed: {rate}")
            return rate

    def invalidate(self) -> None:
        with self._lock:
            self._rate = None
            self._fetched_at = None


def build_rate_source(config) -> RateSource:
    """Rate source described by a LedgerConfig"""
    if config.base_rate_url:
        source: RateSource = HttpRateSource(config.base_rate_url, timeout=config.base_rate_timeout)
    else:
        source = FixedRateSource(config.fixed_base_rate)
    return CachedRateSource(source, ttl_seconds=config.base_rate_cache_ttl_seconds)
