"""TokenQuote: one provider's price observation for one token.

Every price fetcher produces TokenQuote instances; the aggregation step is the
only consumer. Quotes are frozen so they can be shared between an aggregate
and the proxies that copy it.

.. code-block:: python

    >>> quote = TokenQuote(
    ...     name="HOT",
    ...     chain="ethereum",
    ...     contract="0x6c6ee5e31d828de241282b9606c8e98ea48526e2",
    ...     price_usd=0.0021,
    ...     source="geckoterminal",
    ... )
    >>> quote.volume_24h is None
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenQuote:
    """A USD price quote for a token reported by a single source.

    :ivar name: Display name of the token (taken from the unit config).
    :ivar chain: Chain/network identifier (e.g., "ethereum").
    :ivar contract: Token contract address on that chain.
    :ivar price_usd: Reported price in USD.
    :ivar market_cap: Optional market capitalisation in USD.
    :ivar volume_24h: Optional 24h trading volume in USD.
    :ivar liquidity: Optional pool liquidity in USD.
    :ivar price_change_24h: Optional 24h price change in percent.
    :ivar source: Name of the fetcher that produced the quote.
    :ivar timestamp: Time the quote was produced (UTC).
    """

    name: str
    chain: str
    contract: str
    price_usd: float
    source: str
    market_cap: float | None = None
    volume_24h: float | None = None
    liquidity: float | None = None
    price_change_24h: float | None = None
    timestamp: datetime = field(default_factory=_utc_now)
