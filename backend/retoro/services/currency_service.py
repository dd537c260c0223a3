# Overview: Service-layer operations for currency; exchange rates, conversion and formatting.

"""
Currency Conversion Service

WHY: Users buy in many currencies but totals are shown in one. Each item
keeps its original price and a USD price computed at write time.

DESIGN:
- ExchangeRateService owns the rate cache: {rates, base, fetched_at}
- The TTL is checked on every read (default one hour)
- On HTTP failure the stale cache for the same base is used; with no cache
  at all an empty mapping is returned and conversions fall back to 1:1
- One instance per Flask app, kept in app.extensions["exchange_rates"]
- The HTTP session is closed by an atexit hook registered in init_app

Upstream failures are never raised to callers.
"""

from __future__ import annotations

import atexit
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable
from decimal import Decimal, ROUND_HALF_UP

import requests
from flask import current_app

from ..validation import is_valid_currency_code


logger = logging.getLogger(__name__)

EXTENSION_KEY = "exchange_rates"
DEFAULT_BASE = "USD"

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "INR": "₹",
    "KRW": "₩",
    "BRL": "R$",
    "CAD": "C$",
    "AUD": "A$",
    "CHF": "CHF",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "PLN": "zł",
    "RUB": "₽",
    "TRY": "₺",
    "ZAR": "R",
    "MXN": "$",
    "SGD": "S$",
    "HKD": "HK$",
    "NZD": "NZ$",
    "GEL": "₾",
}

CURRENCY_NAMES: dict[str, str] = {
    "USD": "US Dollar",
    "EUR": "Euro",
    "GBP": "British Pound",
    "JPY": "Japanese Yen",
    "CNY": "Chinese Yuan",
    "INR": "Indian Rupee",
    "KRW": "South Korean Won",
    "BRL": "Brazilian Real",
    "CAD": "Canadian Dollar",
    "AUD": "Australian Dollar",
    "CHF": "Swiss Franc",
    "SEK": "Swedish Krona",
    "NOK": "Norwegian Krone",
    "DKK": "Danish Krone",
    "PLN": "Polish Zloty",
    "RUB": "Russian Ruble",
    "TRY": "Turkish Lira",
    "ZAR": "South African Rand",
    "MXN": "Mexican Peso",
    "SGD": "Singapore Dollar",
    "HKD": "Hong Kong Dollar",
    "NZD": "New Zealand Dollar",
    "GEL": "Georgian Lari",
}

_CENT = Decimal("0.01")


def common_currencies() -> list[dict]:
    return [
        {"code": code, "name": CURRENCY_NAMES[code], "symbol": CURRENCY_SYMBOLS[code]}
        for code in CURRENCY_NAMES
    ]


def currency_symbol(currency: str) -> str:
    code = currency.upper()
    return CURRENCY_SYMBOLS.get(code, code)


def format_currency(amount, currency: str = DEFAULT_BASE) -> str:
    value = Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return f"{currency_symbol(currency)}{value}"


def is_valid_currency(currency: str | None) -> bool:
    return is_valid_currency_code((currency or "").upper())


@dataclass
class RateCache:
    rates: dict[str, float]
    base: str
    fetched_at: float


@dataclass
class ExchangeRateService:
    """
    Fetches and caches exchange rates for one base currency at a time.

    http and clock are injectable so tests can run without the network.
    """
    api_url: str
    ttl_seconds: float = 3600
    timeout_seconds: float = 5
    http: requests.Session = field(default_factory=requests.Session)
    clock: Callable[[], float] = time.time
    cache: RateCache | None = None

    def __post_init__(self):
        self._lock = threading.Lock()

    def _is_fresh(self, base: str) -> bool:
        return (
            self.cache is not None
            and self.cache.base == base
            and self.clock() - self.cache.fetched_at < self.ttl_seconds
        )

    def invalidate(self) -> None:
        with self._lock:
            self.cache = None

    def close(self) -> None:
        self.invalidate()
        self.http.close()

    def get_rates(self, base: str = DEFAULT_BASE) -> dict[str, float]:
        """
        Rates keyed by currency code, relative to base.

        Returns the cached mapping while it is fresh, refetches otherwise.
        """
        base = base.upper()
        with self._lock:
            if self._is_fresh(base):
                return self.cache.rates
            stale = self.cache

        # The lock is not held while waiting on the network.
        try:
            response = self.http.get(
                f"{self.api_url.rstrip('/')}/{base}", timeout=self.timeout_seconds
            )
            response.raise_for_status()
            rates = response.json()["rates"]
        except (requests.RequestException, ValueError, KeyError, TypeError):
            logger.exception("Error fetching exchange rates for %s", base)
            if stale is not None and stale.base == base:
                logger.warning("Using expired exchange rate cache due to API error")
                return stale.rates
            return {}

        with self._lock:
            self.cache = RateCache(rates=rates, base=base, fetched_at=self.clock())
        return rates

    def get_rate(self, from_currency: str, to_currency: str) -> float:
        """Rate to multiply an amount in from_currency by; 1.0 when unknown."""
        source = from_currency.upper()
        target = to_currency.upper()
        if source == target:
            return 1.0

        rates = self.get_rates(DEFAULT_BASE)
        if not rates.get(source) or not rates.get(target):
            return 1.0
        return (1 / rates[source]) * rates[target]

    def convert(self, amount, from_currency: str, to_currency: str) -> Decimal:
        """
        Convert through USD and round to cents.

        Same currency, zero amounts and missing rates return the amount unchanged.
        """
        amount = Decimal(str(amount))
        source = from_currency.upper()
        target = to_currency.upper()

        if source == target or amount == 0:
            return amount

        rates = self.get_rates(DEFAULT_BASE)
        if not rates.get(source) or not rates.get(target):
            logger.warning("Exchange rate not found for %s or %s", source, target)
            return amount

        in_usd = amount if source == DEFAULT_BASE else amount / Decimal(str(rates[source]))
        converted = in_usd if target == DEFAULT_BASE else in_usd * Decimal(str(rates[target]))
        return converted.quantize(_CENT, rounding=ROUND_HALF_UP)


def init_app(app) -> ExchangeRateService:
    service = ExchangeRateService(
        api_url=app.config["EXCHANGE_RATE_API_URL"],
        ttl_seconds=app.config["EXCHANGE_RATE_TTL_SECONDS"],
        timeout_seconds=app.config["EXCHANGE_RATE_TIMEOUT_SECONDS"],
    )
    app.extensions[EXTENSION_KEY] = service
    atexit.register(service.close)
    return service


def get_exchange_rates() -> ExchangeRateService:
    return current_app.extensions[EXTENSION_KEY]
