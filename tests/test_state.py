import pytest

from cyberrank.rank.state import EMState, Rank, RankedCidNumber, build_top


def sample_state():
    return EMState([0.5, 0.25], [1.0, 2.0], [0.1])


def test_from_state_scales_rank_values():
    rank = Rank.from_state(sample_state(), full_tree=False)
    assert rank.rank_values[0] == 500_000_000_000_000
    assert rank.cid_count == 2


def test_from_state_sums_entropy():
    rank = Rank.from_state(sample_state(), full_tree=False)
    assert rank.neg_entropy == 3


def test_leaves_round_trip_rank_values():
    rank = Rank.from_state(sample_state(), full_tree=False)
    assert [int.from_bytes(leaf, "little") for leaf in rank.leaves] == rank.rank_values
    assert all(len(leaf) == 8 for leaf in rank.leaves)


def test_top_only_with_full_tree():
    assert Rank.from_state(sample_state(), full_tree=False).top_cids is None
    top = Rank.from_state(sample_state(), full_tree=True).top_cids
    assert [c.number for c in top] == [0, 1]


def test_entropy_padded_to_particle_count():
    rank = Rank.from_state(EMState([0.1, 0.2, 0.3], [0.5], []), full_tree=False)
    assert len(rank.entropy_values) == 3
    assert rank.entropy_values[1:] == [0, 0]


def test_build_top_sorts_descending_stably():
    top = build_top([0, 5, 3, 5], 10)
    assert top == [RankedCidNumber(1, 5), RankedCidNumber(3, 5), RankedCidNumber(2, 3)]


def test_build_top_truncates_when_values_exceed_size():
    values = list(range(1, 12))
    top = build_top(values, 5)
    assert len(top) == 4
    assert [c.rank for c in top] == sorted(values, reverse=True)[:4]


def test_empty_and_clear():
    assert Rank().is_empty()
    rank = Rank.from_state(sample_state(), full_tree=True)
    assert not rank.is_empty()
    rank.clear()
    assert rank.is_empty()
    assert rank.cid_count == 0


def test_copy_drops_tree_and_is_independent():
    rank = Rank.from_state(sample_state(), full_tree=True)
    copied = rank.copy()
    assert copied.leaves is None
    assert copied.rank_values == rank.rank_values
    copied.rank_values[0] = 0
    assert rank.rank_values[0] != copied.rank_values[0]


def test_copy_pads_to_cid_count():
    rank = Rank.from_state(sample_state(), full_tree=False)
    rank.cid_count = 4
    copied = rank.copy()
    assert len(copied.rank_values) == 4
    assert copied.rank_values[2:] == [0, 0]


def test_copy_of_empty_rank_is_empty():
    assert Rank().copy().is_empty()


def test_copy_fails_when_values_exceed_count():
    rank = Rank.from_state(sample_state(), full_tree=False)
    rank.cid_count = 1
    with pytest.raises(RuntimeError):
        rank.copy()


def test_add_new_cids_extends_with_zeros():
    rank = Rank.from_state(sample_state(), full_tree=False)
    rank.add_new_cids(5)
    assert rank.cid_count == 5
    assert rank.rank_values[2:] == [0, 0, 0]
    assert len(rank.entropy_values) == 5
    assert len(rank.leaves) == 5
    assert int.from_bytes(rank.leaves[-1], "little") == 0


def test_add_new_cids_rejects_shrink():
    rank = Rank.from_state(sample_state(), full_tree=False)
    with pytest.raises(ValueError):
        rank.add_new_cids(1)