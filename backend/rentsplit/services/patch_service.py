import uuid
from decimal import Decimal

from pydantic import ValidationError

from rentsplit.schemas.calculation import CalculationData, CustomExpense, Roommate
from rentsplit.schemas.chat import CalculationPatch


class PatchError(ValueError):
    pass


def _new_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def apply_patch(data: CalculationData, patch: CalculationPatch) -> CalculationData:
    """
    Merge a chat-extracted patch into calculation data and return a new,
    re-validated CalculationData. The input is left untouched.

    Removals run first. Roommates and expenses are matched by name,
    case-insensitively: a match is updated with whatever the patch carries,
    anything else is appended with a fresh id.
    """
    roommates = [r.model_copy(deep=True) for r in data.roommates]
    expenses = [e.model_copy(deep=True) for e in data.custom_expenses]

    if patch.remove_roommates:
        doomed = {name.lower() for name in patch.remove_roommates}
        roommates = [r for r in roommates if r.name.lower() not in doomed]
    if patch.remove_custom_expenses:
        doomed = {name.lower() for name in patch.remove_custom_expenses}
        expenses = [e for e in expenses if e.name.lower() not in doomed]

    for incoming in patch.roommates or []:
        existing = next((r for r in roommates if r.name.lower() == incoming.name.lower()), None)
        if existing is None:
            roommates.append(Roommate(
                id=_new_id("roommate"),
                name=incoming.name,
                income=incoming.income if incoming.income is not None else Decimal("0"),
                room_size=incoming.room_size,
            ))
            continue
        if incoming.income is not None:
            existing.income = incoming.income
        if incoming.room_size is not None:
            existing.room_size = incoming.room_size

    for incoming in patch.custom_expenses or []:
        existing = next((e for e in expenses if e.name.lower() == incoming.name.lower()), None)
        if existing is None:
            expenses.append(CustomExpense(id=_new_id("exp"), name=incoming.name, amount=incoming.amount))
        else:
            existing.amount = incoming.amount

    if not roommates:
        raise PatchError("At least one roommate is required")

    merged = data.model_dump()
    merged.update(
        roommates=[r.model_dump() for r in roommates],
        custom_expenses=[e.model_dump() for e in expenses],
    )
    if patch.total_rent is not None:
        merged["total_rent"] = patch.total_rent
    if patch.utilities is not None:
        merged["utilities"] = patch.utilities
    if patch.currency is not None:
        merged["currency"] = patch.currency
    if patch.use_room_size_split is not None:
        merged["use_room_size_split"] = patch.use_room_size_split

    try:
        return CalculationData.model_validate(merged)
    except ValidationError as e:
        raise PatchError(f"Patched data is invalid: {e.error_count()} error(s)") from e
