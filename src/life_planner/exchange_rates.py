from __future__ import annotations

"""Live GBP->LKR conversion rate with retries and a fallback chain.

The calculators only consume a number; this module is where a failing feed is
absorbed. Resolution order: live feed, last good rate stored in settings,
deployment constant.

Network calls are kept minimal; tests mock HTTP transport.
"""

from dataclasses import dataclass
import logging
import time

import httpx

from .database_manager import DatabaseManager
from .plans import FALLBACK_GBP_LKR_RATE
from .repositories import get_setting, set_setting

logger = logging.getLogger(__name__)

RATE_ENDPOINT = "https://open.er-api.com/v6/latest"
LAST_RATE_KEY_FMT = "last_rate_{base}_{quote}"


class ExchangeRateError(Exception):
    pass


@dataclass(slots=True)
class ExchangeRateConfig:
    base_url: str = RATE_ENDPOINT
    timeout: float = 5.0
    max_retries: int = 2
    backoff_base: float = 0.5


class ExchangeRateClient:
    def __init__(self, config: ExchangeRateConfig | None = None, transport: httpx.BaseTransport | None = None):
        self._config = config or ExchangeRateConfig()
        self._client = httpx.Client(timeout=self._config.timeout, transport=transport)

    def close(self):  # pragma: no cover simple
        self._client.close()

    def fetch_rate(self, base: str = "GBP", quote: str = "LKR") -> float:
        """Return units of ``quote`` per one ``base`` or raise ExchangeRateError."""
        url = f"{self._config.base_url.rstrip('/')}/{base}"
        attempt = 0
        while True:
            try:
                resp = self._client.get(url)
                if resp.status_code == 429:
                    raise ExchangeRateError("rate_limited")
                if resp.status_code >= 400:
                    raise ExchangeRateError(f"HTTP {resp.status_code}: {resp.text[:200]}")
                data = resp.json()
                if not isinstance(data, dict):
                    raise ExchangeRateError(f"unexpected payload type {type(data).__name__}")
                if data.get("result") == "error":
                    raise ExchangeRateError(f"feed error: {data.get('error-type', 'unknown')}")
                rates = data.get("rates") or {}
                if not isinstance(rates, dict):
                    raise ExchangeRateError(f"unexpected rates type {type(rates).__name__}")
                value = rates.get(quote)
                if value is None:
                    raise ExchangeRateError(f"{quote} missing from {base} rates")
                rate = float(value)
                if not rate > 0:
                    raise ExchangeRateError(f"non-positive rate {rate} for {base}/{quote}")
                return rate
            except ExchangeRateError:
                attempt += 1
                if attempt > self._config.max_retries:
                    raise
                time.sleep(self._config.backoff_base * (2 ** (attempt - 1)))
            except (httpx.HTTPError, ValueError, TypeError) as e:  # network, JSON or odd values
                attempt += 1
                if attempt > self._config.max_retries:
                    raise ExchangeRateError(str(e)) from e
                time.sleep(self._config.backoff_base * (2 ** (attempt - 1)))


def resolve_rate(
    client: ExchangeRateClient | None,
    fallback: float = FALLBACK_GBP_LKR_RATE,
    db: DatabaseManager | None = None,
    base: str = "GBP",
    quote: str = "LKR",
) -> float:
    key = LAST_RATE_KEY_FMT.format(base=base, quote=quote)
    if client is not None:
        try:
            rate = client.fetch_rate(base, quote)
        except ExchangeRateError as e:
            logger.warning("exchange rate feed failed: %s", e, extra={"_json_pair": f"{base}/{quote}"})
        else:
            if db is not None:
                set_setting(db, key, repr(rate))
            return rate
    if db is not None:
        stored = get_setting(db, key)
        if stored:
            try:
                rate = float(stored)
            except ValueError:
                logger.warning("ignoring malformed stored rate %r", stored)
            else:
                if rate > 0:
                    logger.info("using last known %s/%s rate %.4f", base, quote, rate)
                    return rate
    logger.info("using fallback %s/%s rate %.4f", base, quote, fallback, extra={"_json_source": "fallback"})
    return fallback


__all__ = [
    "ExchangeRateClient",
    "ExchangeRateConfig",
    "ExchangeRateError",
    "resolve_rate",
]
