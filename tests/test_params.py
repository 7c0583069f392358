from decimal import Decimal

import pytest

from cyberrank.rank.params import (
    ParamError,
    RankGenesisState,
    RankParams,
    default_genesis_state,
    default_params,
    validate_calculation_period,
    validate_damping_factor,
    validate_genesis,
    validate_tolerance,
)


def test_default_params_match_source_values():
    params = default_params()
    assert params.calculation_period == 5
    assert params.damping_factor == Decimal("0.85")
    assert params.tolerance == Decimal("0.001")


def test_default_genesis_holds_default_params():
    assert default_genesis_state().params == default_params()


def test_period_below_minimum_is_rejected():
    with pytest.raises(ParamError, match="equal or more than 5 blocks: 4"):
        validate_calculation_period(4)


@pytest.mark.parametrize("value", ["0.7", "0.5"])
def test_damping_too_small(value):
    with pytest.raises(ParamError, match="more than 0.7"):
        validate_damping_factor(Decimal(value))


@pytest.mark.parametrize("value", ["0.9", "0.95"])
def test_damping_too_large(value):
    with pytest.raises(ParamError, match="less than 0.9"):
        validate_damping_factor(Decimal(value))


def test_tolerance_above_upper_bound():
    with pytest.raises(ParamError, match="tolerance is too low"):
        validate_tolerance(Decimal("0.002"))


def test_tolerance_below_lower_bound():
    with pytest.raises(ParamError, match="tolerance is too big"):
        validate_tolerance(Decimal("0.000001"))


@pytest.mark.parametrize(
    "validator,value",
    [
        (validate_calculation_period, "5"),
        (validate_calculation_period, True),
        (validate_damping_factor, 0.85),
        (validate_tolerance, 1),
    ],
)
def test_wrong_types_are_rejected(validator, value):
    with pytest.raises(ParamError, match="invalid parameter type"):
        validator(value)


def test_validate_checks_period_first():
    params = RankParams(calculation_period=3, damping_factor=Decimal("0.1"))
    with pytest.raises(ParamError, match="calculation period"):
        params.validate()


def test_validate_genesis_rejects_bad_tolerance():
    state = RankGenesisState(RankParams(tolerance=Decimal("1")))
    with pytest.raises(ParamError, match="tolerance is too low"):
        validate_genesis(state)