"""Exchange rate API client."""

import logging
import time
from decimal import Decimal

import httpx

from ..exceptions import ExchangeRateAPIError

logger = logging.getLogger(__name__)


class ExchangeRateClient:
    """Client for a latest-rates API (exchangerate-api.com v4 layout).

    Rates are cached per currency pair. When the API fails, the last known
    rate is returned even if it has expired.
    """

    BASE_URL = "https://api.exchangerate-api.com/v4/latest"

    def __init__(
        self,
        base_url: str | None = None,
        cache_seconds: int = 30 * 60,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the exchange rate client."""
        self.cache_seconds = cache_seconds
        self._cache: dict[str, tuple[Decimal, float]] = {}  # pair -> (rate, fetched_at)
        self.client = httpx.Client(
            base_url=base_url or self.BASE_URL,
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _get_rate(self, base_currency: str, target_currency: str) -> Decimal:
        """
        Fetch a rate from the API, bypassing the cache.

        Raises:
            ExchangeRateAPIError: If the request fails or the currency is unknown
        """
        try:
            response = self.client.get(f"/{base_currency}")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ExchangeRateAPIError(
                f"Failed to fetch {base_currency} rates: {e}"
            ) from e

        rate = data.get("rates", {}).get(target_currency)
        if not rate:
            raise ExchangeRateAPIError(f"Unsupported currency: {target_currency}")

        return Decimal(str(rate))

    def fetch_rate(self, base_currency: str, target_currency: str) -> Decimal | None:
        """
        Get how many target_currency units one base_currency unit buys.

        Args:
            base_currency: Currency code to convert from
            target_currency: Currency code to convert to

        Returns:
            The rate, a stale cached rate if the API fails, or None
        """
        base = base_currency.upper()
        target = target_currency.upper()
        cache_key = f"{base}_{target}"

        cached = self._cache.get(cache_key)
        if cached and time.monotonic() - cached[1] < self.cache_seconds:
            return cached[0]

        try:
            rate = self._get_rate(base, target)
        except ExchangeRateAPIError as e:
            logger.warning(f"Exchange rate lookup failed: {e}")
            return cached[0] if cached else None

        self._cache[cache_key] = (rate, time.monotonic())
        logger.debug(f"Fetched rate {base}->{target}: {rate}")
        return rate

    def fetch_rates(
        self, base_currency: str, target_currencies: list[str]
    ) -> dict[str, Decimal]:
        """Fetch several rates, leaving out currencies that fail."""
        rates = {}
        for currency in target_currencies:
            rate = self.fetch_rate(base_currency, currency)
            if rate:
                rates[currency] = rate
        return rates

    def auto_fill_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Rate for pre-filling an expense: 1 for same currency or on failure."""
        if from_currency.upper() == to_currency.upper():
            return Decimal("1")

        return self.fetch_rate(from_currency, to_currency) or Decimal("1")
