"""Periodic vesting schedules that hold time-locked coins."""

from __future__ import annotations

from dataclasses import dataclass, replace
from itertools import chain
from typing import Iterable

from cyberrank.resources.types import ERR_FULL_SLOTS, Coin, ResourcesError

Coins = tuple[Coin, ...]


def add_coins(a: Iterable[Coin], b: Iterable[Coin]) -> Coins:
    """Sum two coin sets by denomination, sorted, with zero amounts dropped."""
    totals: dict[str, int] = {}
    for coin in chain(a, b):
        totals[coin.denom] = totals.get(coin.denom, 0) + coin.amount
    return tuple(Coin(denom, amount) for denom, amount in sorted(totals.items()) if amount)


@dataclass(frozen=True)
class Period:
    """Coins that unlock ``length`` seconds after the previous period ends."""

    amount: Coins
    length: int


def total_period_length(periods: Iterable[Period]) -> int:
    """The summed length of all periods."""
    return sum(period.length for period in periods)


@dataclass(frozen=True)
class PeriodicVestingAccount:
    """An account whose coins unlock period by period from ``start_time``."""

    address: str
    original_vesting: Coins
    start_time: int
    end_time: int
    periods: tuple[Period, ...]
    account_number: int = 0


def new_vesting_account(
    address: str, amount: Coins, length: int, block_time: int
) -> PeriodicVestingAccount:
    """A vesting account with a single period locking ``amount`` for ``length``."""
    amount = tuple(amount)
    return PeriodicVestingAccount(
        address=address,
        original_vesting=amount,
        start_time=block_time,
        end_time=block_time + length,
        periods=(Period(amount, length),),
    )


def _insert(periods: list[Period], amount: Coins, target: int) -> list[Period]:
    result: list[Period] = []
    counter = 0
    remaining = iter(periods)
    for period in remaining:
        counter += period.length
        if counter < target:
            result.append(period)
        elif counter == target:
            result.append(Period(add_coins(period.amount, amount), period.length))
            result.extend(remaining)
        else:
            inserted = Period(amount, target - total_period_length(result))
            result.append(inserted)
            result.append(Period(period.amount, period.length - inserted.length))
            result.extend(remaining)
    return result


def add_to_schedule(
    account: PeriodicVestingAccount,
    amount: Coins,
    length: int,
    block_time: int,
    max_slots: int,
    merge_slot: bool,
) -> PeriodicVestingAccount:
    """Return ``account`` with ``amount`` locked until ``block_time + length``.

    Raises ResourcesError when every slot is taken by an unfinished period and
    ``merge_slot`` is false. The given account is never modified.
    """
    amount = tuple(amount)
    original = add_coins(account.original_vesting, amount)
    periods = list(account.periods)
    start, end = account.start_time, account.end_time

    if end < block_time:
        return replace(
            account,
            original_vesting=amount,
            start_time=block_time,
            end_time=block_time + length,
            periods=(Period(amount, length),),
        )

    if start > block_time:
        if periods:
            first = periods[0]
            periods[0] = Period(first.amount, start - block_time + first.length)
        start = block_time

    if len(periods) == max_slots and not merge_slot:
        if start + periods[0].length > block_time:
            raise ResourcesError(ERR_FULL_SLOTS)
        active: list[Period] = []
        accumulated = 0
        shift = 0
        for period in periods:
            if start + period.length + accumulated > block_time:
                active.append(period)
            else:
                shift += period.length
            accumulated += period.length
        locked: Coins = ()
        for period in active:
            locked = add_coins(locked, period.amount)
        original = add_coins(locked, amount)
        periods = active
        start += shift

    remaining_length = end - block_time
    elapsed = block_time - start
    if remaining_length < length:
        periods.append(Period(amount, length - remaining_length))
        end = block_time + length
    else:
        periods = _insert(periods, amount, elapsed + length)

    return replace(
        account,
        original_vesting=original,
        start_time=start,
        end_time=end,
        periods=tuple(periods),
    )