"""Current price of the tracked asset.

Providers are tried in priority order: Binance and CoinGecko over HTTP,
Hyperliquid through its SDK. The last good price is kept in a short-lived
cache owned by the oracle, used only when every provider fails.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from papertrade.config import settings

logger = logging.getLogger(__name__)

BINANCE_URL = "https://api.binance.com/api/v3/ticker/price"
COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price"


class PriceUnavailableError(RuntimeError):
    """No provider answered and no fresh cached price exists."""


@dataclass
class PriceQuote:
    price: float
    source: str
    from_cache: bool = False


@dataclass
class PriceCache:
    ttl: float = 60.0
    value: float | None = None
    source: str | None = None
    fetched_at: float | None = None

    def store(self, value: float, source: str, now: float):
        self.value = value
        self.source = source
        self.fetched_at = now

    def get_fresh(self, now: float) -> float | None:
        if self.value is None or self.fetched_at is None:
            return None
        if now - self.fetched_at > self.ttl:
            return None
        return self.value


class PriceProvider:
    """One upstream price source."""

    name = "provider"

    async def fetch(self, client: httpx.AsyncClient) -> float:
        raise NotImplementedError


class BinanceProvider(PriceProvider):
    name = "binance"

    def __init__(self, symbol: str = "ETHUSDT", url: str = BINANCE_URL):
        self.symbol = symbol
        self.url = url

    async def fetch(self, client: httpx.AsyncClient) -> float:
        resp = await client.get(self.url, params={"symbol": self.symbol})
        resp.raise_for_status()
        return _parse_price(resp.json()["price"])


class CoinGeckoProvider(PriceProvider):
    name = "coingecko"

    def __init__(self, coin_id: str = "ethereum", url: str = COINGECKO_URL):
        self.coin_id = coin_id
        self.url = url

    async def fetch(self, client: httpx.AsyncClient) -> float:
        resp = await client.get(self.url, params={"ids": self.coin_id, "vs_currencies": "usd"})
        resp.raise_for_status()
        return _parse_price(resp.json()[self.coin_id]["usd"])


class HyperliquidProvider(PriceProvider):
    """Mid price from Hyperliquid's public info endpoint (no auth needed)."""

    name = "hyperliquid"

    def __init__(self, coin: str = "ETH", info_factory: Callable | None = None):
        self.coin = coin
        self._info_factory = info_factory
        self._info = None

    def _all_mids(self) -> dict:
        if self._info is None:
            if self._info_factory is not None:
                self._info = self._info_factory()
            else:
                from hyperliquid.info import Info
                self._info = Info(skip_ws=True)
        return self._info.all_mids()

    async def fetch(self, client: httpx.AsyncClient) -> float:
        # The SDK is synchronous, run in executor
        mids = await asyncio.get_running_loop().run_in_executor(None, self._all_mids)
        return _parse_price(mids[self.coin])


PROVIDER_FACTORIES: dict[str, Callable[[], PriceProvider]] = {
    "binance": lambda: BinanceProvider(settings.binance_symbol),
    "coingecko": lambda: CoinGeckoProvider(settings.coingecko_id),
    "hyperliquid": lambda: HyperliquidProvider(settings.hyperliquid_coin),
}


class PriceOracle:
    """Fallback chain over price providers with a last-known-price cache."""

    def __init__(
        self,
        providers: list[PriceProvider],
        cache_ttl: float = 60.0,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.providers = providers
        self.cache = PriceCache(ttl=cache_ttl)
        self.timeout = timeout
        self._clock = clock
        self._transport = transport

    async def get_current_price(self) -> float:
        quote = await self.get_quote()
        return quote.price

    async def get_quote(self) -> PriceQuote:
        """Ask each provider in turn; fall back to a fresh cached price."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for provider in self.providers:
                try:
                    price = await asyncio.wait_for(provider.fetch(client), timeout=self.timeout)
                except Exception as e:
                    logger.warning(f"Price provider {provider.name} failed: {e!r}")
                    continue
                self.cache.store(price, provider.name, self._clock())
                return PriceQuote(price=price, source=provider.name)

        cached = self.cache.get_fresh(self._clock())
        if cached is not None:
            age = self._clock() - self.cache.fetched_at
            logger.warning(
                f"All price providers failed, using cached {self.cache.source} price "
                f"{cached:.2f} ({age:.0f}s old)"
            )
            return PriceQuote(price=cached, source="cache", from_cache=True)

        logger.error("All price providers failed and no fresh cached price")
        raise PriceUnavailableError("All price providers failed")


def build_price_oracle() -> PriceOracle:
    """Build the oracle from settings."""
    providers = []
    for name in settings.price_providers:
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Unknown price provider {name!r} in settings, ignoring")
            continue
        providers.append(factory())
    return PriceOracle(
        providers,
        cache_ttl=settings.price_cache_ttl,
        timeout=settings.price_timeout,
    )


_oracle: PriceOracle | None = None


def get_price_oracle() -> PriceOracle:
    """Process-wide oracle instance (FastAPI dependency)."""
    global _oracle
    if _oracle is None:
        _oracle = build_price_oracle()
    return _oracle


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_price(raw) -> float:
    """Parse a provider price field; reject anything not a positive finite number."""
    price = float(raw)
    if not math.isfinite(price) or price <= 0:
        raise ValueError(f"Invalid price {raw!r}")
    return price
