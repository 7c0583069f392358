"""Resources keeper: investmint of base tokens into time-locked resources."""

from __future__ import annotations

import logging
import math
from collections.abc import MutableMapping
from dataclasses import dataclass, field, replace
from typing import Protocol

from cyberrank.resources.types import (
    AMPERE,
    ATTRIBUTE_KEY_AMOUNT,
    ATTRIBUTE_KEY_LENGTH,
    ATTRIBUTE_KEY_MINTED,
    ATTRIBUTE_KEY_NEURON,
    ATTRIBUTE_KEY_RESOURCE,
    ATTRIBUTE_VALUE_CATEGORY,
    ERR_ACCOUNT_NOT_FOUND,
    ERR_INVALID_ACCOUNT_TYPE,
    ERR_INVALID_BASE_RESOURCE,
    ERR_ISSUE_COINS,
    ERR_NOT_AVAILABLE_PERIOD,
    ERR_RESOURCE_NOT_EXIST,
    ERR_SMALL_RETURN,
    ERR_TIME_LOCK_COINS,
    EVENT_TYPE_INVESTMINT,
    SCYB,
    VOLT,
    Coin,
    MsgInvestmint,
    ResourcesError,
    ResourcesGenesisState,
    ResourcesParams,
    default_params,
    is_valid_bech32,
)
from cyberrank.resources.vesting import (
    Coins,
    PeriodicVestingAccount,
    add_coins,
    add_to_schedule,
    new_vesting_account,
)

log = logging.getLogger(__name__)

_PRECISION = 10**18
_UINT32 = 0xFFFFFFFF
_HALVING_SHIFT_HEIGHT = 15_000_000
_HALVING_SHIFT_BLOCKS = 600_000
_MIN_HALVING = 10**16  # 0.01
_MIN_RETURN = 1000
_BANDWIDTH_CHARGE = 1000
_BLOCK_SECONDS = 5


class _BandwidthMeter(Protocol):
    def add_to_desirable_bandwidth(self, amount: int) -> None: ...

    def charge(self, address: str, amount: int) -> None: ...


@dataclass
class BlockContext:
    """The block a keeper call runs in: height, unix time and emitted events."""

    height: int
    time: int
    events: list[tuple[str, dict[str, str]]] = field(default_factory=list)


def _dec(value: int) -> int:
    return value * _PRECISION


def _quo_int(value: int, divisor: int) -> int:
    quotient = abs(value) // abs(divisor)
    return quotient if (value >= 0) == (divisor > 0) else -quotient


def _mul(a: int, b: int) -> int:
    product = a * b
    quotient, remainder = divmod(abs(product), _PRECISION)
    half = _PRECISION // 2
    if remainder > half or (remainder == half and quotient % 2 == 1):
        quotient += 1
    return quotient if product >= 0 else -quotient


def _format_dec(value: int) -> str:
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), _PRECISION)
    return f"{sign}{whole}.{frac:018d}"


def _halving(height: int, period: int) -> int:
    if height > _HALVING_SHIFT_HEIGHT:
        exponent = (height - _HALVING_SHIFT_BLOCKS) // period
        halving = int(math.pow(0.5, float(exponent)) * 10000) * 10**14
    else:
        halving = _PRECISION
    return max(halving, _MIN_HALVING)


def _amount_of(coins: Coins, denom: str) -> int:
    return sum(coin.amount for coin in coins if coin.denom == denom)


def _vested(account: PeriodicVestingAccount, now: int) -> Coins:
    if now <= account.start_time:
        return ()
    if now >= account.end_time:
        return account.original_vesting
    vested: Coins = ()
    period_start = account.start_time
    for period in account.periods:
        if now - period_start < period.length:
            break
        vested = add_coins(vested, period.amount)
        period_start += period.length
    return vested


class ResourcesKeeper:
    """Converts base tokens into resources locked in vesting schedules.

    ``accounts`` maps an address to its PeriodicVestingAccount, or to an
    integer account number for a plain account. ``balances`` maps an
    address to its amounts by denomination.
    """

    def __init__(
        self,
        params: ResourcesParams | None = None,
        *,
        accounts: MutableMapping[str, object] | None = None,
        balances: MutableMapping[str, dict[str, int]] | None = None,
        bandwidth: _BandwidthMeter | None = None,
    ) -> None:
        self.params = params if params is not None else default_params()
        self.accounts: MutableMapping[str, object] = {} if accounts is None else accounts
        self.balances: MutableMapping[str, dict[str, int]] = (
            {} if balances is None else balances
        )
        self._bandwidth = bandwidth

    # genesis

    def init_genesis(self, state: ResourcesGenesisState) -> None:
        self.params = state.params

    def export_genesis(self) -> ResourcesGenesisState:
        return ResourcesGenesisState(self.params)

    # calculation

    def calculate_investmint(
        self, ctx: BlockContext, amount: Coin, resource: str, length: int
    ) -> Coin:
        """The resource coin returned for locking ``amount`` for ``length`` seconds."""
        params = self.params
        if resource == VOLT:
            period = params.base_investmint_period_volt
            base_amount = params.base_investmint_amount_volt
            halving_period = params.halving_period_volt_blocks
        elif resource == AMPERE:
            period = params.base_investmint_period_ampere
            base_amount = params.base_investmint_amount_ampere
            halving_period = params.halving_period_ampere_blocks
        else:
            return Coin("", 0)

        cycles = _quo_int(_dec(length), period)
        base = _quo_int(_dec(amount.amount), base_amount.amount)
        halving = _halving(ctx.height, halving_period)
        total = _mul(_mul(_mul(base, cycles), halving), _dec(1000))
        to_mint = Coin(resource, _quo_int(total, _PRECISION))
        log.info(
            "Investmint: cycles=%s base=%s halving=%s mint=%s",
            _format_dec(cycles),
            _format_dec(base),
            _format_dec(halving),
            to_mint,
        )
        return to_mint

    def check_available_period(
        self, ctx: BlockContext, length: int, resource: str
    ) -> bool:
        """Whether ``length`` is within the period available at this height."""
        if resource == VOLT:
            halving = self.params.halving_period_volt_blocks
        elif resource == AMPERE:
            halving = self.params.halving_period_ampere_blocks
        else:
            return length <= 0
        exponent = ctx.height // halving
        doubling = (1 << exponent) & _UINT32 if exponent >= 0 else 0
        available = (doubling * halving * _BLOCK_SECONDS) & _UINT32
        return length <= available

    # accounts

    def add_time_locked_coins(
        self, ctx: BlockContext, address: str, coins: Coins, length: int
    ) -> None:
        """Lock ``coins`` on the account at ``address`` for ``length`` seconds."""
        account = self.accounts.get(address)
        if account is None:
            raise ResourcesError(ERR_ACCOUNT_NOT_FOUND, address)
        if isinstance(account, PeriodicVestingAccount):
            self._lock_on_schedule(ctx, account, coins, length, merge_slot=False)
        elif isinstance(account, int) and not isinstance(account, bool):
            vesting = new_vesting_account(address, tuple(coins), length, ctx.time)
            self.accounts[address] = replace(vesting, account_number=account)
        else:
            raise ResourcesError(ERR_INVALID_ACCOUNT_TYPE, type(account).__name__)

    def _lock_on_schedule(
        self,
        ctx: BlockContext,
        account: PeriodicVestingAccount,
        coins: Coins,
        length: int,
        merge_slot: bool,
    ) -> None:
        self.accounts[account.address] = add_to_schedule(
            account, tuple(coins), length, ctx.time, self.params.max_slots, merge_slot
        )

    def _spendable(self, ctx: BlockContext, address: str, denom: str) -> int:
        balance = self.balances.get(address, {}).get(denom, 0)
        account = self.accounts.get(address)
        if not isinstance(account, PeriodicVestingAccount):
            return balance
        vesting = _amount_of(account.original_vesting, denom) - _amount_of(
            _vested(account, ctx.time), denom
        )
        return balance - min(balance, max(vesting, 0))

    # minting

    def mint(
        self, ctx: BlockContext, address: str, amount: Coin, resource: str, length: int
    ) -> Coin:
        """Mint the resource for ``amount`` to ``address`` and lock it."""
        if self.accounts.get(address) is None:
            raise ResourcesError(ERR_ACCOUNT_NOT_FOUND, address)

        to_mint = self.calculate_investmint(ctx, amount, resource, length)
        if to_mint.amount < _MIN_RETURN:
            raise ResourcesError(ERR_SMALL_RETURN, address)

        balance = self.balances.setdefault(address, {})
        balance[to_mint.denom] = balance.get(to_mint.denom, 0) + to_mint.amount

        account = self.accounts.get(address)
        if not isinstance(account, PeriodicVestingAccount):
            raise ResourcesError(
                ERR_TIME_LOCK_COINS,
                str(ResourcesError(ERR_INVALID_ACCOUNT_TYPE, type(account).__name__)),
            )
        try:
            self._lock_on_schedule(ctx, account, (to_mint,), length, merge_slot=True)
        except ResourcesError as error:
            raise ResourcesError(ERR_TIME_LOCK_COINS, str(error)) from error

        if resource == VOLT and self._bandwidth is not None:
            self._bandwidth.add_to_desirable_bandwidth(to_mint.amount)
            self._bandwidth.charge(address, _BANDWIDTH_CHARGE)

        return to_mint

    def convert_resource(
        self, ctx: BlockContext, neuron: str, amount: Coin, resource: str, length: int
    ) -> Coin:
        """Lock ``amount`` of the base token and mint the resource for it."""
        if not self.check_available_period(ctx, length, resource):
            raise ResourcesError(ERR_NOT_AVAILABLE_PERIOD)
        if self._spendable(ctx, neuron, SCYB) < amount.amount:
            raise ValueError("insufficient funds")
        if (length & _UINT32) < self.params.min_investmint_period:
            raise ResourcesError(ERR_NOT_AVAILABLE_PERIOD)

        try:
            self.add_time_locked_coins(ctx, neuron, (amount,), length)
        except ResourcesError as error:
            raise ResourcesError(ERR_TIME_LOCK_COINS, str(error)) from error
        try:
            return self.mint(ctx, neuron, amount, resource, length)
        except ResourcesError as error:
            raise ResourcesError(ERR_ISSUE_COINS, str(error)) from error

    # messages and queries

    def investmint(self, ctx: BlockContext, msg: MsgInvestmint) -> Coin:
        """Handle an investmint message; returns the minted coin."""
        if not is_valid_bech32(msg.neuron):
            raise ValueError(f"invalid neuron address: {msg.neuron}")

        if msg.resource == VOLT:
            expected = self.params.base_investmint_amount_volt.denom
        elif msg.resource == AMPERE:
            expected = self.params.base_investmint_amount_ampere.denom
        else:
            expected = msg.amount.denom
        if msg.amount.denom != expected:
            raise ResourcesError(ERR_INVALID_BASE_RESOURCE, msg.amount.denom)

        minted = self.convert_resource(
            ctx, msg.neuron, msg.amount, msg.resource, msg.length
        )

        ctx.events.append(
            ("message", {"module": ATTRIBUTE_VALUE_CATEGORY, "sender": msg.neuron})
        )
        ctx.events.append(
            (
                EVENT_TYPE_INVESTMINT,
                {
                    ATTRIBUTE_KEY_NEURON: msg.neuron,
                    ATTRIBUTE_KEY_AMOUNT: str(msg.amount),
                    ATTRIBUTE_KEY_RESOURCE: msg.resource,
                    ATTRIBUTE_KEY_LENGTH: str(msg.length),
                    ATTRIBUTE_KEY_MINTED: str(minted.amount),
                },
            )
        )
        return minted

    def query_investmint(
        self, ctx: BlockContext, amount: Coin, resource: str, length: int
    ) -> Coin:
        """The return of an investmint, without performing it."""
        if amount.denom != SCYB:
            raise ResourcesError(ERR_INVALID_BASE_RESOURCE, str(amount))
        if resource not in (VOLT, AMPERE):
            raise ResourcesError(ERR_RESOURCE_NOT_EXIST, resource)
        return self.calculate_investmint(ctx, amount, resource, length)