import json

import pytest

from cyberrank.resources.types import (
    ERR_NOT_AVAILABLE_PERIOD,
    ERR_RESOURCE_NOT_EXIST,
    SCYB,
    VOLT,
    Coin,
    MsgInvestmint,
    ResourcesError,
)
from cyberrank.resources.wasm import parse_custom

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


def _polymod(values):
    chk = 1
    for v in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i, g in enumerate(GENERATORS):
            if (top >> i) & 1:
                chk ^= g
    return chk


def bech32_address(payload: bytes, hrp: str = "bostrom") -> str:
    data, acc, bits = [], 0, 0
    for b in payload:
        acc = (acc << 8) | b
        bits += 8
        while bits >= 5:
            bits -= 5
            data.append((acc >> bits) & 31)
    if bits:
        data.append((acc << (5 - bits)) & 31)
    expanded = [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]
    pm = _polymod(expanded + data + [0] * 6) ^ 1
    checksum = [(pm >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(CHARSET[d] for d in data + checksum)


NEURON = bech32_address(bytes(range(20)))


def message(**overrides):
    body = {
        "neuron": NEURON,
        "amount": {"denom": SCYB, "amount": "1000000000"},
        "resource": VOLT,
        "length": 2592000,
    }
    body.update(overrides)
    return json.dumps({"investmint": body})


def test_parses_investmint():
    msgs = parse_custom(message())
    assert msgs == [MsgInvestmint(NEURON, Coin(SCYB, 1000000000), VOLT, 2592000)]


def test_accepts_bytes():
    assert parse_custom(message().encode()) == parse_custom(message())


def test_invalid_json():
    with pytest.raises(ValueError, match="failed to parse link custom msg"):
        parse_custom("{not json")


def test_unknown_variant():
    with pytest.raises(ValueError, match="Unknown variant of Resources"):
        parse_custom(json.dumps({"link": {}}))


def test_zero_length_fails_validation():
    with pytest.raises(ResourcesError) as error:
        parse_custom(message(length=0))
    assert error.value.code == ERR_NOT_AVAILABLE_PERIOD


def test_unknown_resource_fails_validation():
    with pytest.raises(ResourcesError) as error:
        parse_custom(message(resource="gold"))
    assert error.value.code == ERR_RESOURCE_NOT_EXIST


def test_numeric_amount_is_rejected():
    with pytest.raises(ValueError, match="failed to parse link custom msg"):
        parse_custom(message(amount={"denom": SCYB, "amount": 5}))


def test_invalid_neuron_fails_validation():
    with pytest.raises(ValueError, match="invalid neuron address"):
        parse_custom(message(neuron="nobody"))