"""
Compact, URL-embeddable encoding of CalculationData.

The payload is a positional JSON array (no keys, no ids) encoded with the
URL-safe base64 alphabet and stripped of padding:

    [rent, utilities, [[expense_name, amount], ...],
     [[name, income, room_size_or_0, adjustments_or_null], ...],
     currency_code, split_flag]

Adjustments are flattened to
    [bath, bath_pct, window, no_window_pct, flex, flex_pct, custom_pct]
with booleans as 0/1. A zero percentage decodes back to the field default.
"""
import base64
import json
from decimal import Decimal

from rentsplit.schemas.calculation import CalculationData, RoomAdjustments
from rentsplit.utils.currency_utils import code_to_currency, currency_to_code


class ShareTokenError(ValueError):
    pass


def _num(value: Decimal | None) -> int | float:
    if value is None:
        return 0
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _pack_adjustments(adj: RoomAdjustments | None) -> list | None:
    if adj is None:
        return None
    return [
        1 if adj.has_private_bathroom else 0,
        _num(adj.private_bathroom_percentage),
        1 if adj.has_window else 0,
        _num(adj.no_window_percentage),
        1 if adj.has_flex_wall else 0,
        _num(adj.flex_wall_percentage),
        _num(adj.adjustment_percentage),
    ]


def _unpack_adjustments(packed: list | None) -> dict | None:
    if not packed:
        return None
    bath, bath_pct, window, no_window_pct, flex, flex_pct, custom_pct = packed
    adj = {
        "has_private_bathroom": bath == 1,
        "has_window": window == 1,
        "has_flex_wall": flex == 1,
    }
    # 0 means "use the default"
    if bath_pct:
        adj["private_bathroom_percentage"] = bath_pct
    if no_window_pct:
        adj["no_window_percentage"] = no_window_pct
    if flex_pct:
        adj["flex_wall_percentage"] = flex_pct
    if custom_pct:
        adj["adjustment_percentage"] = custom_pct
    return adj


def encode_calculation(data: CalculationData) -> str:
    packed = [
        _num(data.total_rent),
        _num(data.utilities),
        [[e.name, _num(e.amount)] for e in data.custom_expenses],
        [
            [r.name, _num(r.income), _num(r.room_size), _pack_adjustments(r.adjustments)]
            for r in data.roommates
        ],
        currency_to_code(data.currency),
        1 if data.use_room_size_split else 0,
    ]
    raw = json.dumps(packed, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_calculation(token: str) -> CalculationData:
    """Inverse of encode_calculation. Ids are regenerated from position."""
    try:
        # Accept both alphabets so tokens made with standard base64 still load
        normalized = token.strip().replace("+", "-").replace("/", "_")
        padded = normalized + "=" * (-len(normalized) % 4)
        packed = json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"), parse_float=Decimal)

        rent, utilities, expenses, roommates, currency_code, split_flag = packed
        return CalculationData(
            total_rent=rent,
            utilities=utilities,
            custom_expenses=[
                {"id": f"exp{i}", "name": name, "amount": amount}
                for i, (name, amount) in enumerate(expenses, start=1)
            ],
            roommates=[
                {
                    "id": f"roommate{i}",
                    "name": name,
                    "income": income,
                    "room_size": room_size or None,
                    "adjustments": _unpack_adjustments(adjustments),
                }
                for i, (name, income, room_size, adjustments) in enumerate(roommates, start=1)
            ],
            currency=code_to_currency(currency_code),
            use_room_size_split=split_flag == 1,
        )
    except (ValueError, TypeError, RecursionError) as e:
        raise ShareTokenError(f"Failed to decode share token: {e}") from e


def compression_ratio(data: CalculationData) -> dict:
    """Sizes of the JSON the client sends versus the token, and the percentage saved."""
    original = len(data.model_dump_json(by_alias=True))
    compressed = len(encode_calculation(data))
    return {
        "original": original,
        "compressed": compressed,
        "ratio": round((1 - compressed / original) * 100) if original else 0,
    }
