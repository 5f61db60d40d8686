"""In-memory fetchers shared by the coordinator and oracle tests."""

import asyncio

from pricing_oracle.src.fetchers import FetcherError, ForexFetcher, PriceFetcher
from pricing_oracle.src.OracleConfig import UnitConfig
from pricing_oracle.src.TokenQuote import TokenQuote


class FakePriceFetcher(PriceFetcher):
    """Serves fixed prices by contract; unknown contracts fail."""

    def __init__(self, name: str, prices: dict[str, float], delay: float = 0.0) -> None:
        super().__init__()
        self.name = name
        self.prices = prices
        self.delay = delay
        self.calls: list[str] = []

    async def fetch(self, unit: UnitConfig) -> TokenQuote:
        self.calls.append(unit.contract)
        if self.delay:
            await asyncio.sleep(self.delay)
        if unit.contract not in self.prices:
            raise FetcherError(f"[{self.name}] unknown contract {unit.contract}")
        return self._quote(unit, self.prices[unit.contract], volume_24h=1000.0)


class FakeForexFetcher(ForexFetcher):
    """Serves fixed forex rates; unknown symbols are skipped."""

    def __init__(self, name: str, rates: dict[str, float]) -> None:
        super().__init__()
        self.name = name
        self.rates = rates

    async def fetch_rate(self, symbol: str) -> float | None:
        return self.rates.get(symbol)
