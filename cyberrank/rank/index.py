"""Search index over the knowledge graph, ordered by particle rank."""

from __future__ import annotations

import logging
import operator
from bisect import bisect_right
from dataclasses import dataclass

from cyberrank.rank.context import Links
from cyberrank.rank.state import Rank, RankedCidNumber

log = logging.getLogger(__name__)

_by_rank = operator.attrgetter("rank")


@dataclass(frozen=True)
class CompactLink:
    """A cyberlink between two particles made by one account."""

    source: int
    target: int
    account: int


class SearchIndexError(Exception):
    """Raised when the search index cannot answer a query."""


def _page(
    entries: list[RankedCidNumber], page: int, per_page: int
) -> tuple[list[RankedCidNumber], int]:
    total = len(entries)
    start = page * per_page
    if start >= total:
        raise SearchIndexError("page not found")
    end = start + per_page
    if end > total:
        end = start + total % per_page
    return entries[start:end], total


class SearchIndex:
    """Outgoing and incoming links of every particle, highest rank first.

    The index stays locked for reading from creation or loading until the
    first rank is put into it.
    """

    def __init__(self) -> None:
        self._links: list[list[RankedCidNumber]] = []
        self._backlinks: list[list[RankedCidNumber]] = []
        self._rank = Rank()
        self._locked = True

    @property
    def locked(self) -> bool:
        return self._locked

    def load(self, links: Links) -> None:
        """Fill the index from the graph's outgoing links; locks the index."""
        self._locked = True
        self._links = []
        self._backlinks = []
        for source, targets in links.items():
            self._extend(self._links, source)
            for target in targets:
                self._insert(self._links[source], target)
                self._extend(self._backlinks, target)
                self._insert(self._backlinks[target], source)
        log.info("The node search index is loaded")

    def put_new_links(self, links: list[CompactLink]) -> None:
        for link in links:
            self._extend(self._links, link.source)
            self._insert(self._links[link.source], link.target)
            self._extend(self._backlinks, link.target)
            self._insert(self._backlinks[link.target], link.source)

    def put_new_rank(self, rank: Rank) -> None:
        """Re-sort the index by a new rank and open it for reading."""
        self._rank = rank.copy()
        try:
            for entries in (*self._links, *self._backlinks):
                rescored = [
                    RankedCidNumber(entry.number, self.rank_value(entry.number))
                    for entry in entries
                ]
                rescored.sort(key=_by_rank, reverse=True)
                entries[:] = rescored
        finally:
            self._locked = False

    def search(
        self, cid_number: int, page: int, per_page: int
    ) -> tuple[list[RankedCidNumber], int]:
        """One page of the particles ``cid_number`` links to, and their total."""
        log.info(
            "Search query: particle=%d page=%d perPage=%d", cid_number, page, per_page
        )
        if self._locked:
            raise SearchIndexError(
                "search index currently unavailable after node restart"
            )
        return self._query(self._links, cid_number, page, per_page)

    def backlinks(
        self, cid_number: int, page: int, per_page: int
    ) -> tuple[list[RankedCidNumber], int]:
        """One page of the particles linking to ``cid_number``, and their total."""
        log.info(
            "Backlinks query: cid=%d page=%d perPage=%d", cid_number, page, per_page
        )
        if self._locked:
            raise SearchIndexError(
                "the search index is currently unavailable after node restart"
            )
        return self._query(self._backlinks, cid_number, page, per_page)

    def top(self, page: int, per_page: int) -> tuple[list[RankedCidNumber], int]:
        """One page of the top-ranked particles, and their total."""
        if self._locked:
            raise SearchIndexError(
                "the search index is currently unavailable after node restart"
            )
        return _page(self._rank.top_cids or [], page, per_page)

    def rank_value(self, cid_number: int) -> int:
        values = self._rank.rank_values
        if not values or len(values) <= cid_number:
            return 0
        return values[cid_number]

    @staticmethod
    def _query(
        table: list[list[RankedCidNumber]], cid_number: int, page: int, per_page: int
    ) -> tuple[list[RankedCidNumber], int]:
        if cid_number >= len(table) or not table[cid_number]:
            return [], 0
        return _page(table[cid_number], page, per_page)

    @staticmethod
    def _extend(table: list[list[RankedCidNumber]], number: int) -> None:
        if number >= len(table):
            table.extend([] for _ in range(number + 1 - len(table)))

    def _insert(self, entries: list[RankedCidNumber], number: int) -> None:
        ranked = RankedCidNumber(number, self.rank_value(number))
        pos = bisect_right(entries, -ranked.rank, key=lambda entry: -entry.rank)
        entries.insert(pos, ranked)


class NoopSearchIndex:
    """Stand-in index for nodes that do not serve the search API.

    Updates are discarded; only their number is kept.
    """

    _DISABLED = "the search API is not enabled on this node"

    def __init__(self) -> None:
        self.discarded_links = 0
        self.discarded_ranks = 0

    def load(self, links: Links) -> None:
        self.discarded_links += sum(len(targets) for targets in links.values())

    def put_new_links(self, links: list[CompactLink]) -> None:
        self.discarded_links += len(links)

    def put_new_rank(self, rank: Rank) -> None:
        self.discarded_ranks += 1

    def search(
        self, cid_number: int, page: int, per_page: int
    ) -> tuple[list[RankedCidNumber], int]:
        raise SearchIndexError(self._DISABLED)

    def backlinks(
        self, cid_number: int, page: int, per_page: int
    ) -> tuple[list[RankedCidNumber], int]:
        raise SearchIndexError(self._DISABLED)

    def top(self, page: int, per_page: int) -> tuple[list[RankedCidNumber], int]:
        raise SearchIndexError(self._DISABLED)

    def rank_value(self, cid_number: int) -> int:
        if cid_number < 0:
            raise ValueError(f"invalid particle number: {cid_number}")
        return 0