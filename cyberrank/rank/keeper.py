"""Rank keeper: drives rank calculation per block and answers rank queries."""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from concurrent.futures import Future, ThreadPoolExecutor

from cyberrank.rank.calculate import calculate_rank
from cyberrank.rank.context import (
    CalculationContext,
    ComputeUnit,
    GraphSource,
    StakeSource,
)
from cyberrank.rank.index import NoopSearchIndex, SearchIndex
from cyberrank.rank.params import (
    CONTEXT_CID_COUNT,
    CONTEXT_LINK_COUNT,
    LATEST_BLOCK_NUMBER,
    LATEST_MERKLE_TREE,
    NEXT_MERKLE_TREE,
    NEXT_RANK_CID_COUNT,
    RankGenesisState,
    RankParams,
    default_params,
)
from cyberrank.rank.state import Rank

log = logging.getLogger(__name__)

_LEAF_SIZE = 8
_MAX_TOP_PER_PAGE = 1000


class ParticleNotFoundError(LookupError):
    """Raised when a particle is not known to the graph."""


class InvalidRequestError(ValueError):
    """Raised when a query is malformed or out of bounds."""


def _encode_number(number: int) -> bytes:
    return number.to_bytes(8, "little")


def _decode_number(data: bytes) -> int:
    return int.from_bytes(data, "little")


def _split_leaves(data: bytes | None) -> list[bytes]:
    data = data or b""
    return [data[start : start + _LEAF_SIZE] for start in range(0, len(data), _LEAF_SIZE)]


def _tree_bytes(rank: Rank) -> bytes:
    return b"".join(rank.leaves or [])


class RankKeeper:
    """Keeps the network rank, schedules recalculation and serves queries.

    A calculation started at the end of a period block runs in the background
    and is applied at the end of the next period block.
    """

    def __init__(
        self,
        graph: GraphSource,
        stakes: StakeSource,
        store: MutableMapping[bytes, bytes] | None = None,
        *,
        allow_search: bool = False,
        compute_unit: ComputeUnit = ComputeUnit.CPU,
        params: RankParams | None = None,
    ) -> None:
        self._graph = graph
        self._stakes = stakes
        self._store: MutableMapping[bytes, bytes] = {} if store is None else store
        self._allow_search = allow_search
        self._compute_unit = compute_unit
        self.params = params if params is not None else default_params()

        self._network_rank = Rank(leaves=[])
        self._next_rank = Rank()
        self._cid_count = 0
        self._has_new_links_for_period = True
        self._calculation: Future[Rank] | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._index: SearchIndex | NoopSearchIndex = self._build_search_index()

    def __enter__(self) -> RankKeeper:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Stop the background calculation worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # genesis

    def init_genesis(self, state: RankGenesisState) -> None:
        self.params = state.params

    def export_genesis(self) -> RankGenesisState:
        return RankGenesisState(self.params)

    # lifecycle

    def load_state(self) -> None:
        """Restore the ranks from the store and rebuild the search index."""
        self._network_rank = Rank(
            leaves=_split_leaves(self._store.get(LATEST_MERKLE_TREE)),
            cid_count=self._graph.cids_count(),
        )
        self._next_rank = Rank(
            leaves=_split_leaves(self._store.get(NEXT_MERKLE_TREE)),
            cid_count=self._next_rank_cid_count(),
        )
        self._cid_count = self._graph.cids_count()
        self._index = self._build_search_index()
        self._index.load(self._graph.out_links())

    def end_block(self, height: int) -> None:
        """Process the end of block ``height``."""
        self._store[LATEST_BLOCK_NUMBER] = _encode_number(height)
        current_cids_count = self._graph.cids_count()

        self._index.put_new_links(self._graph.current_block_new_links())
        self._graph.merge_context_links()

        block_has_new_links = self._graph.has_new_links()
        self._has_new_links_for_period = (
            self._has_new_links_for_period or block_has_new_links
        )

        params = self.params
        if height % params.calculation_period == 0 or height == 1:
            damping_factor = float(str(params.damping_factor))
            tolerance = float(str(params.tolerance))

            self._check_rank_calc_finished(block=True)
            self._apply_next_rank()

            self._cid_count = current_cids_count
            stake_changed = self._stakes.stake_changed()

            if self._has_new_links_for_period or stake_changed:
                self._graph.update_rank_links()
                self._graph.update_rank_neudegs()
                self._has_new_links_for_period = False
                self._prepare_context()
                self._start_rank_calculation(damping_factor, tolerance)

        self._network_rank.add_new_cids(current_cids_count)
        tree = _tree_bytes(self._network_rank)
        log.info("Latest Rank: hash=%s", tree.hex().upper())
        self._store_if_changed(LATEST_MERKLE_TREE, tree)

    @property
    def latest_block_number(self) -> int:
        data = self._store.get(LATEST_BLOCK_NUMBER)
        return 0 if data is None else _decode_number(data)

    # queries

    def rank_value_by_number(self, number: int) -> int:
        values = self._network_rank.rank_values or []
        if number >= len(values):
            return 0
        return values[number]

    def rank(self, particle: str) -> int:
        return self._index.rank_value(self._cid_number(particle))

    def search(
        self, particle: str, page: int = 0, limit: int = 10
    ) -> tuple[list[tuple[str, int]], int]:
        """Particles linked from ``particle``, highest rank first, and their total."""
        number = self._graph.cid_number(particle)
        if number is None:
            raise ParticleNotFoundError("")
        entries, total = self._index.search(number, page, limit)
        return self._named(entries), total

    def backlinks(
        self, particle: str, page: int = 0, limit: int = 10
    ) -> tuple[list[tuple[str, int]], int]:
        """Particles linking to ``particle``, highest rank first, and their total."""
        entries, total = self._index.backlinks(self._cid_number(particle), page, limit)
        return self._named(entries), total

    def top(self, page: int = 0, per_page: int = 10) -> tuple[list[tuple[str, int]], int]:
        """The top-ranked particles, and their total."""
        if per_page > _MAX_TOP_PER_PAGE:
            raise InvalidRequestError(f"per page must not exceed {_MAX_TOP_PER_PAGE}")
        entries, total = self._index.top(page, per_page)
        return self._named(entries), total

    def entropy(self, particle: str) -> int:
        number = self._cid_number(particle)
        return (self._network_rank.entropy_values or [])[number]

    def negentropy(self) -> int:
        return self._network_rank.neg_entropy

    def karma(self, account_number: int) -> int:
        return (self._network_rank.karma_values or [])[account_number]

    # internals

    def _cid_number(self, particle: str) -> int:
        number = self._graph.cid_number(particle)
        if number is None:
            raise ParticleNotFoundError(particle)
        return number

    def _named(self, entries) -> list[tuple[str, int]]:
        return [(self._graph.cid(entry.number), entry.rank) for entry in entries]

    def _build_search_index(self) -> SearchIndex | NoopSearchIndex:
        return SearchIndex() if self._allow_search else NoopSearchIndex()

    def _store_if_changed(self, key: bytes, value: bytes) -> None:
        if self._store.get(key) != value:
            self._store[key] = value

    def _store_number_if_changed(self, key: bytes, current: int, number: int) -> None:
        if current != number:
            self._store[key] = _encode_number(number)

    def _next_rank_cid_count(self) -> int:
        data = self._store.get(NEXT_RANK_CID_COUNT)
        return self._graph.cids_count() if data is None else _decode_number(data)

    def _stored_number(self, key: bytes) -> int:
        data = self._store.get(key)
        return 0 if data is None else _decode_number(data)

    def _prepare_context(self) -> None:
        self._store_number_if_changed(
            CONTEXT_CID_COUNT,
            self._stored_number(CONTEXT_CID_COUNT),
            self._graph.cids_count(),
        )
        self._store_number_if_changed(
            CONTEXT_LINK_COUNT,
            self._stored_number(CONTEXT_LINK_COUNT),
            self._graph.links_count(),
        )

    def _start_rank_calculation(self, damping_factor: float, tolerance: float) -> None:
        ctx = CalculationContext(
            cids_count=self._stored_number(CONTEXT_CID_COUNT),
            in_links=self._graph.in_links(),
            out_links=self._graph.out_links(),
            stakes=self._stakes.total_stakes(),
            neudegs=self._graph.neudegs(),
            damping_factor=damping_factor,
            tolerance=tolerance,
            links_count=self._stored_number(CONTEXT_LINK_COUNT),
            neurons_count=self._stakes.next_account_number(),
            full_tree=self._allow_search,
        )
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="rank-calculation"
            )
        self._calculation = self._executor.submit(
            calculate_rank, ctx, self._compute_unit
        )

    def _check_rank_calc_finished(self, block: bool) -> None:
        calculation = self._calculation
        if calculation is None:
            return
        if not calculation.done():
            if not block:
                return
            log.info("Waiting for cyber~Rank calculation to finish")
        try:
            new_rank = calculation.result()
        except Exception as error:
            log.error("Error during cyber~Rank calculation: %s", error)
            raise
        finally:
            self._calculation = None
        self._handle_next_rank(new_rank)

    def _handle_next_rank(self, new_rank: Rank) -> None:
        self._next_rank = new_rank
        tree = _tree_bytes(new_rank)
        log.info("Next Rank: hash=%s", tree.hex().upper())
        self._store_if_changed(NEXT_MERKLE_TREE, tree)
        self._store_number_if_changed(
            NEXT_RANK_CID_COUNT, self._next_rank_cid_count(), new_rank.cid_count
        )

    def _apply_next_rank(self) -> None:
        if not self._next_rank.is_empty():
            self._network_rank = self._next_rank
            self._index.put_new_rank(self._network_rank)
        self._next_rank = Rank()