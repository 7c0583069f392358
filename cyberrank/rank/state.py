"""Computed rank state: raw float results and their integer form."""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from functools import reduce

_SCALE = 1e15
_TOP_SIZE = 1000


@dataclass
class EMState:
    """Raw results of a rank calculation."""

    rank_values: list[float] = field(default_factory=list)
    entropy_values: list[float] = field(default_factory=list)
    karma_values: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class RankedCidNumber:
    number: int
    rank: int


def _leaf(value: int) -> bytes:
    return value.to_bytes(8, "little")


def build_top(values: list[int], size: int) -> list[RankedCidNumber]:
    """Particles with a non-zero rank, highest first, ties in cid order."""
    ranked = [
        RankedCidNumber(number, rank) for number, rank in enumerate(values) if rank != 0
    ]
    ranked.sort(key=operator.attrgetter("rank"), reverse=True)
    if len(values) > size:
        ranked = ranked[: size - 1]
    return ranked


@dataclass
class Rank:
    """Integer rank state.

    ``leaves`` holds the 8-byte little-endian leaf data of the rank Merkle
    tree; ``None`` means there is no tree.
    """

    rank_values: list[int] | None = None
    entropy_values: list[int] | None = None
    karma_values: list[int] | None = None
    leaves: list[bytes] | None = None
    cid_count: int = 0
    top_cids: list[RankedCidNumber] | None = None
    neg_entropy: int = 0

    @classmethod
    def from_state(cls, state: EMState, full_tree: bool) -> Rank:
        count = len(state.rank_values)
        if len(state.entropy_values) > count:
            raise ValueError("more entropy values than particles")

        rank_values = [int(v * _SCALE) for v in state.rank_values]
        entropy_values = [int(v * _SCALE) for v in state.entropy_values]
        entropy_values.extend([0] * (count - len(entropy_values)))
        neg_entropy = reduce(operator.add, state.entropy_values, 0.0)
        karma_values = [int(v * _SCALE) for v in state.karma_values]

        return cls(
            rank_values=rank_values,
            entropy_values=entropy_values,
            karma_values=karma_values,
            leaves=[_leaf(v) for v in rank_values],
            cid_count=count,
            top_cids=build_top(rank_values, _TOP_SIZE) if full_tree else None,
            neg_entropy=int(neg_entropy),
        )

    def is_empty(self) -> bool:
        return not self.rank_values and self.leaves is None

    def clear(self) -> None:
        self.rank_values = None
        self.entropy_values = None
        self.karma_values = None
        self.leaves = None
        self.cid_count = 0
        self.top_cids = None
        self.neg_entropy = 0

    def copy(self) -> Rank:
        """Copy without the tree, padding values up to ``cid_count``."""
        if self.rank_values is None:
            return Rank()

        def padded(values: list[int] | None, what: str) -> list[int]:
            values = values or []
            if len(values) > self.cid_count:
                raise RuntimeError(f"Not all {what} values have been copied")
            return list(values) + [0] * (self.cid_count - len(values))

        return Rank(
            rank_values=padded(self.rank_values, "rank"),
            entropy_values=padded(self.entropy_values, "entropy"),
            karma_values=list(self.karma_values or []),
            leaves=None,
            cid_count=self.cid_count,
            top_cids=list(self.top_cids or []),
            neg_entropy=self.neg_entropy,
        )

    def add_new_cids(self, current_cid_count: int) -> None:
        """Extend the state with zero-ranked particles up to the given count."""
        new_count = current_cid_count - self.cid_count
        if new_count < 0:
            raise ValueError(
                f"cid count cannot shrink from {self.cid_count} to {current_cid_count}"
            )
        if self.rank_values is not None:
            self.rank_values.extend([0] * new_count)
        if self.entropy_values is not None:
            self.entropy_values.extend([0] * new_count)
        if self.leaves is not None:
            self.leaves.extend([_leaf(0)] * new_count)
        self.cid_count = current_cid_count