"""Input data for a rank calculation and the sources it is drawn from."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from operator import itemgetter
from typing import Protocol

# cid -> neighbouring cid -> accounts that made the link
Links = dict[int, dict[int, set[int]]]


class ComputeUnit(IntEnum):
    CPU = 0
    GPU = 1


class StakeSource(Protocol):
    """Supplies neuron stakes for rank calculation."""

    def stake_changed(self) -> bool: ...

    def total_stakes(self) -> dict[int, int]: ...

    def next_account_number(self) -> int: ...


class GraphSource(Protocol):
    """Supplies the knowledge graph: particles, links and neuron degrees."""

    def cids_count(self) -> int: ...

    def cid_number(self, cid: str) -> int | None: ...

    def cid(self, number: int) -> str: ...

    def neudegs(self) -> dict[int, int]: ...

    def update_rank_neudegs(self) -> None: ...

    def in_links(self) -> Links: ...

    def out_links(self) -> Links: ...

    def links_count(self) -> int: ...

    def current_block_new_links(self) -> list: ...

    def update_rank_links(self) -> None: ...

    def merge_context_links(self) -> None: ...

    def has_new_links(self) -> bool: ...

    def is_link_exist(self, source: int, target: int, account: int) -> bool: ...

    def is_any_link_exist(self, source: int, target: int) -> bool: ...


@dataclass
class CalculationContext:
    """A snapshot of the graph and stakes taken for one rank calculation."""

    cids_count: int
    in_links: Links
    out_links: Links
    stakes: dict[int, int]
    neudegs: dict[int, int]
    damping_factor: float
    tolerance: float
    links_count: int = 0
    neurons_count: int = 0
    full_tree: bool = False

    def sorted_in_links(self, cid: int) -> list[tuple[int, set[int]]]:
        """Incoming neighbours of ``cid`` with their accounts, by cid number."""
        return sorted(self.in_links.get(cid, {}).items(), key=itemgetter(0))

    def sorted_out_links(self, cid: int) -> list[tuple[int, set[int]]]:
        """Outgoing neighbours of ``cid`` with their accounts, by cid number."""
        return sorted(self.out_links.get(cid, {}).items(), key=itemgetter(0))