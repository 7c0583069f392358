"""Rank, entropy and karma calculation over the knowledge graph."""

from __future__ import annotations

import logging
import math
import time
from itertools import chain

from cyberrank.rank.context import CalculationContext, ComputeUnit
from cyberrank.rank.state import EMState, Rank

log = logging.getLogger(__name__)


class GPUUnavailableError(RuntimeError):
    """Raised when a GPU calculation is requested but not supported."""


class _Stakes:
    """Cached stake sums over the links of a calculation context."""

    def __init__(self, ctx: CalculationContext) -> None:
        self._ctx = ctx
        self._link: dict[tuple[int, int], int] = {}
        self._out: dict[int, int] = {}

    def normalized(self, agent: int) -> int:
        return self._ctx.stakes.get(agent, 0) // self._ctx.neudegs.get(agent, 0)

    def link(self, source: int, target: int) -> int:
        key = (source, target)
        if key not in self._link:
            users = self._ctx.out_links.get(source, {}).get(target, ())
            self._link[key] = sum(self.normalized(user) for user in users)
        return self._link[key]

    def outgoing(self, source: int) -> int:
        if source not in self._out:
            targets = self._ctx.out_links.get(source, {})
            self._out[source] = sum(self.link(source, target) for target in targets)
        return self._out[source]

    def incoming(self, target: int) -> int:
        sources = self._ctx.in_links.get(target, {})
        return sum(self.link(source, target) for source in sources)


def _step(
    ctx: CalculationContext,
    stakes: _Stakes,
    corrected_default: float,
    damping: float,
    previous: list[float],
) -> list[float]:
    rank = list(previous)
    for cid in ctx.in_links:
        sources = ctx.sorted_in_links(cid)
        if not sources:
            continue
        ksum = 0.0
        for source, _ in sources:
            link_stake = stakes.link(source, cid)
            out_stake = stakes.outgoing(source)
            if link_stake == 0 or out_stake == 0:
                continue
            ksum = previous[source] * (link_stake / out_stake) + ksum
        rank[cid] = ksum * damping + corrected_default
    return rank


def _entropy(
    ctx: CalculationContext, stakes: _Stakes, size: int, damping: float
) -> list[float]:
    swd = [
        damping * stakes.incoming(i) + (1 - damping) * stakes.outgoing(i)
        for i in range(size)
    ]

    sumswd = [0.0] * size
    for i in range(size):
        for neighbour in ctx.in_links.get(i, {}):
            sumswd[i] += damping * swd[neighbour]
        for neighbour in ctx.out_links.get(i, {}):
            sumswd[i] += (1 - damping) * swd[neighbour]

    entropy = [0.0] * size
    for i in range(size):
        if swd[i] == 0:
            continue
        neighbours = chain(ctx.in_links.get(i, {}), ctx.out_links.get(i, {}))
        for neighbour in neighbours:
            total = sumswd[neighbour]
            if total == 0:
                continue
            entropy[i] += abs(-swd[i] / total * math.log2(swd[i] / total))
    return entropy


def _karma(
    ctx: CalculationContext, stakes: _Stakes, rank: list[float], entropy: list[float]
) -> list[float]:
    karma = [0.0] * len(ctx.stakes)
    for source, targets in ctx.out_links.items():
        total = stakes.outgoing(source)
        if total == 0:
            continue
        luminosity = rank[source] * entropy[source]
        for users in targets.values():
            for user in users:
                stake = stakes.normalized(user)
                if stake == 0:
                    continue
                karma[user] += (stake / total) * luminosity
    return karma


def calculate_rank_cpu(ctx: CalculationContext) -> EMState:
    """Iterate the stake-weighted rank to the context's tolerance."""
    size = ctx.cids_count
    if size == 0 or not ctx.stakes:
        return EMState()

    damping = ctx.damping_factor
    stakes = _Stakes(ctx)

    default_rank = (1.0 - damping) / size
    dangling = sum(1 for i in range(size) if not ctx.in_links.get(i))
    inner_product = default_rank * (dangling / size)
    corrected_default = damping * inner_product + default_rank

    previous = [default_rank] * size
    rank = previous
    change = ctx.tolerance + 1
    while change > ctx.tolerance:
        rank = _step(ctx, stakes, corrected_default, damping, previous)
        change = max((abs(p - r) for p, r in zip(previous, rank)), default=0.0)
        previous = rank

    entropy = _entropy(ctx, stakes, size, damping)
    karma = _karma(ctx, stakes, rank, entropy)
    return EMState(rank_values=rank, entropy_values=entropy, karma_values=karma)


def calculate_rank(ctx: CalculationContext, unit: ComputeUnit) -> Rank:
    """Calculate the rank on the given compute unit."""
    start = time.monotonic()
    if unit != ComputeUnit.CPU:
        raise GPUUnavailableError(
            "Daemon compiled without gpu support, but started in gpu mode"
        )
    rank = Rank.from_state(calculate_rank_cpu(ctx), ctx.full_tree)
    log.info(
        "rank calculated in %.3fs: cyberlinks=%d particles=%d",
        time.monotonic() - start,
        ctx.links_count,
        ctx.cids_count,
    )
    return rank