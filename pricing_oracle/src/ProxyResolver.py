"""ProxyResolver: Price units by reference to another unit or price reference.

A proxy unit has no quotes of its own. Its AggregatedResult is a copy of its
target's result (a real unit, another proxy, or a price reference) relabelled
with the proxy's index, name and contract, with ``sources == ["proxy"]``.

Proxies that point at other proxies are resolved after their targets, so
multi-hop chains work in any configuration order. Proxies that form a cycle
cannot be priced and are skipped, as are proxies whose target has no result.

.. code-block:: python

    >>> resolver = ProxyResolver()
    >>> unit_1 = AggregatedResult(1, "HOT", "0x6c6e", 0.002, valid=True)
    >>> proxies = [
    ...     ProxyDefinition(4, "wHOT", "0xabc", use_unit=3),
    ...     ProxyDefinition(3, "HOT2", "0xdef", use_unit=1),
    ... ]
    >>> [r.unit_index for r in resolver.resolve([unit_1], {}, proxies)]
    [3, 4]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from .AggregatedResult import AggregatedResult


@dataclass(frozen=True)
class ProxyDefinition:
    """A unit whose price is taken from exactly one target.

    :ivar unit_index: Index of the proxy unit.
    :ivar name: Display name of the proxy unit.
    :ivar contract: Contract address of the proxy unit.
    :ivar use_unit: Index of the target unit, if proxying a unit.
    :ivar use_reference: Id of the target price reference, if proxying one.
    """

    unit_index: int
    name: str
    contract: str
    use_unit: int | None = None
    use_reference: str | None = None

    def describe_target(self) -> str:
        """Return a human-readable description of the proxy target."""
        if self.use_unit is not None:
            return f"unit {self.use_unit}"
        return f"reference '{self.use_reference}'"


class ProxyResolver:
    """Resolves proxy units against already aggregated results.

    :ivar logger: Logger receiving resolution diagnostics.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def resolve(
        self,
        real_results: Sequence[AggregatedResult],
        reference_results: Mapping[str, AggregatedResult],
        proxies: Sequence[ProxyDefinition],
    ) -> list[AggregatedResult]:
        """Produce one AggregatedResult per proxy whose target has a result.

        :param real_results: Aggregated results of the real units.
        :param reference_results: Aggregated results of price references by id.
        :param proxies: Proxy definitions, in configuration order.
        :returns: Results for the resolved proxies, in resolution order.
        """
        by_index: dict[int, AggregatedResult] = {r.unit_index: r for r in real_results}
        resolved: list[AggregatedResult] = []

        for proxy in self._dependency_order(proxies):
            if proxy.use_unit is not None:
                target = by_index.get(proxy.use_unit)
            else:
                target = reference_results.get(proxy.use_reference or "")

            if target is None:
                self.logger.warning(
                    f"unit {proxy.unit_index} ({proxy.name}) proxy "
                    f"{proxy.describe_target()} not found or not fetched"
                )
                continue

            self.logger.info(
                f"Proxying unit {proxy.unit_index} ({proxy.name}) from "
                f"{proxy.describe_target()}, price={target.avg_price_usd:.8f}"
            )
            result = target.as_proxy(proxy.unit_index, proxy.name, proxy.contract)
            by_index[proxy.unit_index] = result
            resolved.append(result)

        return resolved

    def _dependency_order(
        self, proxies: Sequence[ProxyDefinition]
    ) -> list[ProxyDefinition]:
        """Order proxies so every proxy follows the proxy it points at.

        Each proxy has at most one outgoing edge, so following ``use_unit``
        from any proxy either ends at a non-proxy target or runs into a
        cycle. Cycle members are dropped with a warning.
        """
        proxy_by_index = {p.unit_index: p for p in proxies}
        placed: set[int] = set()
        ordered: list[ProxyDefinition] = []

        for proxy in proxies:
            chain: list[ProxyDefinition] = []
            current: ProxyDefinition | None = proxy

            while current is not None and current.unit_index not in placed:
                if current in chain:
                    start = chain.index(current)
                    cycle = chain[start:]
                    members = ", ".join(str(p.unit_index) for p in cycle)
                    for member in cycle:
                        self.logger.warning(
                            f"unit {member.unit_index} ({member.name}) proxy "
                            f"cycle detected ({members}), skipping"
                        )
                        placed.add(member.unit_index)
                    chain = chain[:start]
                    break

                chain.append(current)
                if current.use_unit is None:
                    break
                current = proxy_by_index.get(current.use_unit)

            for member in reversed(chain):
                placed.add(member.unit_index)
                ordered.append(member)

        return ordered


def merge_and_sort(
    real_results: Sequence[AggregatedResult],
    proxy_results: Sequence[AggregatedResult],
) -> list[AggregatedResult]:
    """Combine real and proxy results ordered by unit index.

    :param real_results: Aggregated results of the real units.
    :param proxy_results: Results produced by ProxyResolver.resolve().
    :returns: All results sorted by unit_index.
    """
    return sorted([*real_results, *proxy_results], key=lambda r: r.unit_index)
