import logging
from decimal import Decimal

from rentsplit.schemas.calculation import CalculationData, RoomAdjustments, Roommate, SplitResult
from rentsplit.utils.currency_utils import CENT, round_currency

logger = logging.getLogger(__name__)

MAX_ADJUSTMENT = Decimal("50")
MIN_ADJUSTMENT = Decimal("-50")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def basis_fractions(roommates: list[Roommate], use_room_size_split: bool) -> list[Decimal]:
    """
    Unrounded share of the allocation basis for each roommate.

    Room size is used when requested and at least one room has a positive size,
    income otherwise. Whenever the chosen basis sums to zero everyone gets an
    equal fraction instead.
    """
    n = len(roommates)
    if use_room_size_split:
        weights = [r.room_size if r.room_size and r.room_size > 0 else _ZERO for r in roommates]
    else:
        weights = [r.income for r in roommates]

    total = sum(weights, _ZERO)
    if total <= 0:
        return [Decimal(1) / Decimal(n)] * n
    return [w / total for w in weights]


def net_adjustment_percentage(adjustments: RoomAdjustments | None) -> Decimal:
    """Sum of all active room feature percentages, clamped to [-50, 50]."""
    if adjustments is None:
        return _ZERO

    pct = _ZERO
    if adjustments.has_private_bathroom:
        pct += adjustments.private_bathroom_percentage
    if not adjustments.has_window:
        pct += adjustments.no_window_percentage
    if adjustments.has_flex_wall:
        pct += adjustments.flex_wall_percentage
    if adjustments.adjustment_percentage is not None:
        pct += adjustments.adjustment_percentage

    return max(MIN_ADJUSTMENT, min(MAX_ADJUSTMENT, pct))


def compute(data: CalculationData, use_room_size_split: bool | None = None) -> list[SplitResult]:
    """
    Split rent, utilities and custom expenses between roommates.

    Rent follows the allocation basis, shifted by each roommate's room
    adjustments and then rescaled so the adjusted shares add back up to
    total_rent. Utilities and custom expenses are split evenly.

    Every money field is rounded to cents on its own; total_share is the sum
    of the rounded line items so a roommate's breakdown always adds up on
    screen, even if the grand total drifts by a cent per roommate.

    use_room_size_split defaults to the flag carried on the data.
    """
    roommates = data.roommates
    n = len(roommates)
    if n == 0:
        return []

    if use_room_size_split is None:
        use_room_size_split = data.use_room_size_split

    total_rent = data.total_rent
    fractions = basis_fractions(roommates, use_room_size_split)
    base_shares = [total_rent * f for f in fractions]

    adjusted_shares = []
    for roommate, base in zip(roommates, base_shares):
        pct = net_adjustment_percentage(roommate.adjustments)
        adjusted_shares.append(base + base * pct / _HUNDRED)

    total_adjusted = sum(adjusted_shares, _ZERO)
    if abs(total_adjusted - total_rent) < CENT or total_adjusted <= 0:
        final_shares = adjusted_shares
    else:
        factor = total_rent / total_adjusted
        logger.debug(f"Redistributing adjusted rent {total_adjusted} -> {total_rent} (factor {factor})")
        final_shares = [share * factor for share in adjusted_shares]

    utilities_share = round_currency(data.utilities / n)
    expenses_total = sum((e.amount for e in data.custom_expenses), _ZERO)
    custom_expenses_share = round_currency(expenses_total / n)

    results = []
    for roommate, fraction, base, final in zip(roommates, fractions, base_shares, final_shares):
        rent_share = round_currency(final)
        results.append(SplitResult(
            roommate_id=roommate.id,
            roommate_name=roommate.name,
            income=roommate.income,
            basis_percentage=round_currency(fraction),
            rent_share=rent_share,
            utilities_share=utilities_share,
            custom_expenses_share=custom_expenses_share,
            adjustment_amount=round_currency(final - base),
            total_share=rent_share + utilities_share + custom_expenses_share,
        ))
    return results
