import pytest

from cyberrank.resources.types import ERR_FULL_SLOTS, SCYB, VOLT, Coin, ResourcesError
from cyberrank.resources.vesting import (
    Period,
    PeriodicVestingAccount,
    add_coins,
    add_to_schedule,
    new_vesting_account,
    total_period_length,
)

ADDRESS = "abcdef1qpzry9x8gf2tvdw0s3jn54khce6mua7lmqqqxw"


def coins(n, denom=SCYB):
    return (Coin(denom, n),)


def account(start, end, periods):
    original = ()
    for period in periods:
        original = add_coins(original, period.amount)
    return PeriodicVestingAccount(ADDRESS, original, start, end, tuple(periods))


def assert_consistent(acc):
    assert total_period_length(acc.periods) == acc.end_time - acc.start_time


def test_add_coins_merges_and_sorts():
    result = add_coins((Coin(VOLT, 2), Coin(SCYB, 1)), (Coin(SCYB, 4),))
    assert [c.denom for c in result] == sorted([SCYB, VOLT])
    assert dict((c.denom, c.amount) for c in result) == {SCYB: 5, VOLT: 2}


def test_add_coins_drops_zero():
    assert add_coins((Coin(SCYB, 3),), (Coin(SCYB, -3),)) == ()


def test_total_period_length():
    periods = [Period(coins(1), 4), Period(coins(1), 6)]
    assert total_period_length(periods) == 10
    assert total_period_length([]) == 0


def test_new_vesting_account():
    acc = new_vesting_account(ADDRESS, coins(7), 50, 1000)
    assert acc.start_time == 1000
    assert acc.end_time == 1050
    assert acc.periods == (Period(coins(7), 50),)
    assert acc.original_vesting == coins(7)


def test_insert_source_worked_example():
    x = coins(9, VOLT)
    periods = [
        Period(coins(1), 1),
        Period(coins(1), 2),
        Period(coins(3), 8),
        Period(coins(3), 5),
    ]
    acc = account(100, 116, periods)
    result = add_to_schedule(acc, x, 5, 100, 8, False)
    assert result.periods == (
        Period(coins(1), 1),
        Period(coins(1), 2),
        Period(x, 2),
        Period(coins(3), 6),
        Period(coins(3), 5),
    )
    assert result.end_time == acc.end_time
    assert result.original_vesting == add_coins(acc.original_vesting, x)
    assert_consistent(result)


def test_insert_on_boundary_merges_amount():
    acc = account(100, 110, [Period(coins(2), 4), Period(coins(3), 6)])
    result = add_to_schedule(acc, coins(5), 4, 100, 8, False)
    assert result.periods[0] == Period(add_coins(coins(2), coins(5)), 4)
    assert result.periods[1] == acc.periods[1]
    assert_consistent(result)


def test_longer_length_appends_period():
    acc = account(100, 110, [Period(coins(2), 10)])
    result = add_to_schedule(acc, coins(5), 20, 104, 8, False)
    assert result.end_time == 104 + 20
    assert result.periods[-1] == Period(coins(5), 20 - (acc.end_time - 104))
    assert_consistent(result)


def test_expired_schedule_is_replaced():
    acc = account(100, 110, [Period(coins(2), 10)])
    result = add_to_schedule(acc, coins(5), 30, 200, 8, False)
    assert result.periods == (Period(coins(5), 30),)
    assert result.start_time == 200
    assert result.end_time == 230
    assert result.original_vesting == coins(5)


def test_future_start_is_moved_to_now():
    acc = account(110, 116, [Period(coins(1), 6)])
    result = add_to_schedule(acc, coins(2), 20, 100, 8, False)
    assert result.start_time == 100
    assert result.periods[0].length == acc.end_time - 100
    assert result.end_time == 120
    assert_consistent(result)


def test_full_slots_rejected():
    acc = account(100, 110, [Period(coins(1), 5), Period(coins(1), 5)])
    with pytest.raises(ResourcesError) as excinfo:
        add_to_schedule(acc, coins(3), 4, 102, 2, False)
    assert excinfo.value.code == ERR_FULL_SLOTS
    assert acc.periods == (Period(coins(1), 5), Period(coins(1), 5))


def test_merge_slot_ignores_slot_limit():
    acc = account(100, 110, [Period(coins(1), 5), Period(coins(1), 5)])
    result = add_to_schedule(acc, coins(3), 5, 102, 2, True)
    assert len(result.periods) == 3
    assert result.original_vesting == add_coins(acc.original_vesting, coins(3))
    assert_consistent(result)


def test_passed_slots_are_cleaned():
    passed = Period(coins(1), 5)
    active = Period(coins(2, VOLT), 5)
    acc = account(100, 110, [passed, active])
    result = add_to_schedule(acc, coins(3), 4, 108, 2, False)
    assert result.start_time == 100 + passed.length
    assert result.periods[0] == active
    assert result.original_vesting == add_coins(active.amount, coins(3))
    assert result.end_time == 108 + 4
    assert_consistent(result)