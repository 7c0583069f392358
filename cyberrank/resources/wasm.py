"""Custom contract messages of the resources module."""

from __future__ import annotations

import json

from cyberrank.resources.types import Coin, MsgInvestmint

_PARSE_FAILED = "failed to parse link custom msg"


def _fail(reason: str) -> ValueError:
    return ValueError(f"{_PARSE_FAILED}: {reason}")


def _decode_investmint(body: object) -> MsgInvestmint:
    if not isinstance(body, dict):
        raise _fail("investmint must be an object")

    neuron = body.get("neuron", "")
    resource = body.get("resource", "")
    length = body.get("length", 0)
    amount = body.get("amount", {})
    if not isinstance(neuron, str) or not isinstance(resource, str):
        raise _fail("neuron and resource must be strings")
    if isinstance(length, bool) or not isinstance(length, int) or length < 0:
        raise _fail("length must be an unsigned integer")
    if not isinstance(amount, dict):
        raise _fail("amount must be an object")

    denom = amount.get("denom", "")
    value = amount.get("amount", "0")
    if not isinstance(denom, str) or not isinstance(value, str):
        raise _fail("coin denom and amount must be strings")
    try:
        coin_amount = int(value)
    except ValueError as error:
        raise _fail(f"invalid coin amount {value!r}") from error

    return MsgInvestmint(
        neuron=neuron, amount=Coin(denom, coin_amount), resource=resource, length=length
    )


def parse_custom(data: str | bytes) -> list[MsgInvestmint]:
    """Decode and validate a custom resources message sent by a contract."""
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as error:
        raise _fail(str(error)) from error
    if not isinstance(payload, dict):
        raise _fail("expected an object")

    body = payload.get("investmint")
    if body is None:
        raise ValueError(
            "Unknown variant of Resources: invalid CosmosMsg from the contract"
        )
    msg = _decode_investmint(body)
    msg.validate_basic()
    return [msg]