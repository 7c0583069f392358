from cyberrank.rank.context import CalculationContext


def make_ctx():
    out_links = {0: {2: {0}, 1: {0}}, 1: {2: {1}}}
    in_links = {1: {0: {0}}, 2: {1: {1}, 0: {0}}}
    return CalculationContext(
        cids_count=3,
        in_links=in_links,
        out_links=out_links,
        stakes={0: 10, 1: 5},
        neudegs={0: 2, 1: 1},
        damping_factor=0.85,
        tolerance=0.001,
    )


def test_sorted_in_links_orders_by_cid():
    ctx = make_ctx()
    assert [num for num, _ in ctx.sorted_in_links(2)] == [0, 1]


def test_sorted_in_links_keeps_accounts():
    ctx = make_ctx()
    assert dict(ctx.sorted_in_links(2)) == {0: {0}, 1: {1}}


def test_sorted_out_links_orders_by_cid():
    ctx = make_ctx()
    assert [num for num, _ in ctx.sorted_out_links(0)] == [1, 2]


def test_missing_links_give_empty_list():
    ctx = make_ctx()
    assert ctx.sorted_in_links(0) == []
    assert ctx.sorted_out_links(2) == []