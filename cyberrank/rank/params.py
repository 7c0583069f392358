"""Rank module parameters, genesis state and store keys."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

MODULE_NAME = "rank"
STORE_KEY = MODULE_NAME
ROUTER_KEY = MODULE_NAME
QUERIER_ROUTE = MODULE_NAME

GLOBAL_STORE_KEY_PREFIX = b"\x00"

LATEST_BLOCK_NUMBER = GLOBAL_STORE_KEY_PREFIX + b"latestBlockNumber"
LATEST_MERKLE_TREE = GLOBAL_STORE_KEY_PREFIX + b"latestMerkleTree"
NEXT_MERKLE_TREE = GLOBAL_STORE_KEY_PREFIX + b"nextMerkleTree"
NEXT_RANK_CID_COUNT = GLOBAL_STORE_KEY_PREFIX + b"nextRankParticlesAmount"
CONTEXT_CID_COUNT = GLOBAL_STORE_KEY_PREFIX + b"contextParticlesAmount"
CONTEXT_LINK_COUNT = GLOBAL_STORE_KEY_PREFIX + b"contextLinkAmount"

KEY_CALCULATION_PERIOD = b"CalculationPeriod"
KEY_DAMPING_FACTOR = b"DampingFactor"
KEY_TOLERANCE = b"Tolerance"

_MIN_CALCULATION_PERIOD = 5
_DAMPING_LOWER = Decimal("0.7")
_DAMPING_UPPER = Decimal("0.9")
_TOLERANCE_UPPER = Decimal("0.001")
_TOLERANCE_LOWER = Decimal("0.00001")


class ParamError(ValueError):
    """Raised when a rank parameter is out of range or of the wrong type."""


def _type_error(value: object) -> ParamError:
    return ParamError(f"invalid parameter type: {type(value).__name__}")


def validate_calculation_period(value: object) -> None:
    """Check that the calculation period is an integer of at least 5 blocks."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise _type_error(value)
    if value < _MIN_CALCULATION_PERIOD:
        raise ParamError(
            f"calculation period should be equal or more than 5 blocks: {value}"
        )


def validate_damping_factor(value: object) -> None:
    """Check that the damping factor lies strictly between 0.7 and 0.9."""
    if not isinstance(value, Decimal):
        raise _type_error(value)
    if value <= _DAMPING_LOWER:
        raise ParamError(f"damping factor should be equal or more than 0.7: {value}")
    if value >= _DAMPING_UPPER:
        raise ParamError(f"damping factor should be equal or less than 0.9: {value}")


def validate_tolerance(value: object) -> None:
    """Check that the tolerance lies between 0.00001 and 0.001."""
    if not isinstance(value, Decimal):
        raise _type_error(value)
    if value > _TOLERANCE_UPPER:
        raise ParamError(f"tolerance is too low: {value}")
    if value < _TOLERANCE_LOWER:
        raise ParamError(f"tolerance is too big: {value}")


@dataclass(frozen=True)
class RankParams:
    """Parameters governing rank calculation."""

    calculation_period: int = 5
    damping_factor: Decimal = Decimal("0.85")
    tolerance: Decimal = Decimal("0.001")

    def validate(self) -> None:
        validate_calculation_period(self.calculation_period)
        validate_damping_factor(self.damping_factor)
        validate_tolerance(self.tolerance)


def default_params() -> RankParams:
    return RankParams()


@dataclass(frozen=True)
class RankGenesisState:
    """Genesis state of the rank module."""

    params: RankParams = field(default_factory=default_params)


def default_genesis_state() -> RankGenesisState:
    return RankGenesisState(default_params())


def validate_genesis(state: RankGenesisState) -> None:
    state.params.validate()