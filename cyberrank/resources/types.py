"""Resources module types: coins, parameters, genesis state, messages and errors."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

MODULE_NAME = "resources"
ROUTER_KEY = MODULE_NAME
QUERIER_ROUTE = MODULE_NAME
RESOURCES_NAME = "resources"

SCYB = "hydrogen"
VOLT = "millivolt"
AMPERE = "milliampere"
MEGA = 1_000_000

EVENT_TYPE_INVESTMINT = "investmint"
ATTRIBUTE_KEY_NEURON = "neuron"
ATTRIBUTE_KEY_AMOUNT = "amount"
ATTRIBUTE_KEY_RESOURCE = "resource"
ATTRIBUTE_KEY_LENGTH = "length"
ATTRIBUTE_KEY_MINTED = "minted"
ATTRIBUTE_VALUE_CATEGORY = MODULE_NAME

ACTION_INVESTMINT = "investmint"

QUERY_PARAMS = "params"
QUERY_INVESTMINT = "investmint"

DEFAULT_PARAMSPACE = MODULE_NAME
DEFAULT_MAX_SLOTS = 8
DEFAULT_HALVING_PERIOD_VOLT = 9_000_000
DEFAULT_HALVING_PERIOD_AMPERE = 9_000_000
DEFAULT_INVESTMINT_PERIOD_VOLT = 2_592_000
DEFAULT_INVESTMINT_PERIOD_AMPERE = 2_592_000
DEFAULT_MIN_INVESTMINT_PERIOD = 86_400

KEY_MAX_SLOTS = b"MaxSlots"
KEY_HALVING_PERIOD_VOLT_BLOCKS = b"HalvingPeriodVoltBlocks"
KEY_HALVING_PERIOD_AMPERE_BLOCKS = b"HalvingPeriodAmpereBlocks"
KEY_BASE_INVESTMINT_PERIOD_VOLT = b"BaseInvestmintPeriodVolt"
KEY_BASE_INVESTMINT_PERIOD_AMPERE = b"BaseInvestmintPeriodAmpere"
KEY_BASE_INVESTMINT_AMOUNT_VOLT = b"BaseInvestmintAmountVolt"
KEY_BASE_INVESTMINT_AMOUNT_AMPERE = b"BaseInvestmintAmountAmpere"
KEY_MIN_INVESTMINT_PERIOD = b"MinInvestmintPeriod"

ERR_TIME_LOCK_COINS = 2
ERR_ISSUE_COINS = 3
ERR_MINT_COINS = 4
ERR_BURN_COINS = 5
ERR_SEND_MINTED_COINS = 6
ERR_NOT_AVAILABLE_PERIOD = 7
ERR_INVALID_ACCOUNT_TYPE = 8
ERR_ACCOUNT_NOT_FOUND = 9
ERR_RESOURCE_NOT_EXIST = 10
ERR_FULL_SLOTS = 11
ERR_SMALL_RETURN = 12
ERR_INVALID_BASE_RESOURCE = 13

_ERROR_DESCRIPTIONS = {
    ERR_TIME_LOCK_COINS: "error timelock coins",
    ERR_ISSUE_COINS: "error issue coins",
    ERR_MINT_COINS: "error mint coins",
    ERR_BURN_COINS: "error burn coins",
    ERR_SEND_MINTED_COINS: "error send minted coins",
    ERR_NOT_AVAILABLE_PERIOD: "period not available",
    ERR_INVALID_ACCOUNT_TYPE: "receiver account type not supported",
    ERR_ACCOUNT_NOT_FOUND: "account not found",
    ERR_RESOURCE_NOT_EXIST: "resource does not exist",
    ERR_FULL_SLOTS: "all slots are full",
    ERR_SMALL_RETURN: "insufficient resources return amount",
    ERR_INVALID_BASE_RESOURCE: "invalid base resource",
}


class ResourcesError(Exception):
    """An error of the resources module, identified by its registered code."""

    codespace = MODULE_NAME

    def __init__(self, code: int, detail: str = "") -> None:
        if code not in _ERROR_DESCRIPTIONS:
            raise ValueError(f"unknown resources error code: {code}")
        self.code = code
        self.description = _ERROR_DESCRIPTIONS[code]
        self.detail = detail
        super().__init__(f"{detail}: {self.description}" if detail else self.description)


_DENOM = r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}"
_DENOM_RE = re.compile(rf"^{_DENOM}$")
_COIN_RE = re.compile(rf"^((?:[0-9]+(?:\.[0-9]+)?|\.[0-9]+))\s*({_DENOM})$")


@dataclass(frozen=True)
class Coin:
    """An amount of a single denomination."""

    denom: str
    amount: int

    @classmethod
    def parse(cls, text: str) -> Coin:
        """Parse ``<amount><denom>``; a decimal amount is truncated."""
        match = _COIN_RE.match(text.strip())
        if match is None:
            raise ValueError(f"invalid decimal coin expression: {text}")
        try:
            amount = int(Decimal(match.group(1)))
        except InvalidOperation as error:
            raise ValueError(f"invalid decimal coin expression: {text}") from error
        return cls(match.group(2), amount)

    def is_valid(self) -> bool:
        return bool(_DENOM_RE.match(self.denom)) and self.amount >= 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_lt(self, other: Coin) -> bool:
        if self.denom != other.denom:
            raise ValueError(
                f"invalid coin denominations; {self.denom}, {other.denom}"
            )
        return self.amount < other.amount

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


def _type_error(value: object) -> ValueError:
    return ValueError(f"invalid parameter type: {type(value).__name__}")


def _check_uint(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _type_error(value)
    return value


def _check_coin(value: object) -> Coin:
    if not isinstance(value, Coin):
        raise _type_error(value)
    return value


def _validate_max_slots(value: object) -> None:
    v = _check_uint(value)
    if v == 0:
        raise ValueError(f"max entries must be positive: {v}")
    if v > 16:
        raise ValueError(f"max resources slots must be less or equal to 16: {v}")


def _validate_halving_period(value: object, resource: str) -> None:
    v = _check_uint(value)
    if v < 6_000_000:
        raise ValueError(
            f"base halving period for {resource} must be more than 6000000 blocks: {v}"
        )


def _validate_investmint_period(value: object, resource: str) -> None:
    v = _check_uint(value)
    if v < 604_800:
        raise ValueError(
            f"base investmint period for {resource} must be more than 604800 seconds: {v}"
        )


def _validate_investmint_amount(value: object, resource: str) -> None:
    v = _check_coin(value)
    if v.is_lt(Coin(SCYB, MEGA * 10)):
        raise ValueError(
            f"base investmint amount for {resource} must be more than 10000000: {v.amount}"
        )


def _validate_min_investmint_period(value: object) -> None:
    v = _check_uint(value)
    if v < 86_400:
        raise ValueError(f"min investmint period must be more than 86400 seconds: {v}")


@dataclass(frozen=True)
class ResourcesParams:
    """Parameters governing investmint of resources."""

    max_slots: int = DEFAULT_MAX_SLOTS
    halving_period_volt_blocks: int = DEFAULT_HALVING_PERIOD_VOLT
    halving_period_ampere_blocks: int = DEFAULT_HALVING_PERIOD_AMPERE
    base_investmint_period_volt: int = DEFAULT_INVESTMINT_PERIOD_VOLT
    base_investmint_period_ampere: int = DEFAULT_INVESTMINT_PERIOD_AMPERE
    base_investmint_amount_volt: Coin = Coin(SCYB, MEGA * 1000)
    base_investmint_amount_ampere: Coin = Coin(SCYB, MEGA * 100)
    min_investmint_period: int = DEFAULT_MIN_INVESTMINT_PERIOD

    def validate(self) -> None:
        _validate_max_slots(self.max_slots)
        _validate_halving_period(self.halving_period_volt_blocks, "Volt")
        _validate_halving_period(self.halving_period_ampere_blocks, "Ampere")
        _validate_investmint_period(self.base_investmint_period_volt, "Volt")
        _validate_investmint_period(self.base_investmint_period_ampere, "Ampere")
        _validate_investmint_amount(self.base_investmint_amount_volt, "Volt")
        _validate_investmint_amount(self.base_investmint_amount_ampere, "Ampere")
        _validate_min_investmint_period(self.min_investmint_period)


def default_params() -> ResourcesParams:
    return ResourcesParams()


@dataclass(frozen=True)
class ResourcesGenesisState:
    """Genesis state of the resources module."""

    params: ResourcesParams = field(default_factory=default_params)


def default_genesis_state() -> ResourcesGenesisState:
    return ResourcesGenesisState(default_params())


def validate_genesis(state: ResourcesGenesisState) -> None:
    state.params.validate()


_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_BECH32_MAX_LENGTH = 1023


def _polymod(values: list[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = (checksum & 0x1FFFFFF) << 5 ^ value
        for bit, generator in enumerate(_BECH32_GENERATORS):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_5_to_8(data: list[int]) -> bytes | None:
    acc = bits = 0
    out = bytearray()
    for value in data:
        acc = (acc << 5) | value
        bits += 5
        while bits >= 8:
            bits -= 8
            out.append((acc >> bits) & 0xFF)
    if bits >= 5 or (acc << (8 - bits)) & 0xFF:
        return None
    return bytes(out)


def is_valid_bech32(address: str) -> bool:
    """True if ``address`` is a well-formed bech32 string carrying a payload."""
    if not 8 <= len(address) <= _BECH32_MAX_LENGTH:
        return False
    if any(ord(c) < 33 or ord(c) > 126 for c in address):
        return False
    if address.lower() != address and address.upper() != address:
        return False
    address = address.lower()
    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address):
        return False
    hrp, tail = address[:pos], address[pos + 1 :]
    if any(c not in _BECH32_CHARSET for c in tail):
        return False
    data = [_BECH32_CHARSET.index(c) for c in tail]
    if _polymod(_hrp_expand(hrp) + data) != 1:
        return False
    payload = _convert_5_to_8(data[:-6])
    return bool(payload)


@dataclass(frozen=True)
class MsgInvestmint:
    """Request to lock base tokens for a period in return for a resource."""

    neuron: str
    amount: Coin
    resource: str
    length: int

    def validate_basic(self) -> None:
        if not is_valid_bech32(self.neuron):
            raise ValueError(f"invalid neuron address: {self.neuron}")
        if not self.amount.is_valid() or not self.amount.is_positive():
            raise ValueError(f"{self.amount}: invalid coins")
        if self.resource not in (VOLT, AMPERE):
            raise ResourcesError(ERR_RESOURCE_NOT_EXIST, self.resource)
        if self.length == 0:
            raise ResourcesError(ERR_NOT_AVAILABLE_PERIOD)