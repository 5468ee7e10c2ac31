from decimal import Decimal
from typing import Annotated

from pydantic import AliasChoices, AliasGenerator, BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

# Decimal in Python, plain number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Percent = Money


def _snake_or_camel(name: str) -> AliasChoices:
    return AliasChoices(name, to_camel(name))


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase keys and serializes to camelCase, as the browser client expects."""
    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=_snake_or_camel, serialization_alias=to_camel),
    )


class RoomAdjustments(CamelModel):
    has_private_bathroom: bool = False
    private_bathroom_percentage: Percent = Decimal("15")
    has_window: bool = True
    no_window_percentage: Percent = Decimal("-10")
    has_flex_wall: bool = False
    flex_wall_percentage: Percent = Decimal("-5")
    adjustment_percentage: Percent | None = None


class Roommate(CamelModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    income: Money = Field(ge=0)
    room_size: Money | None = Field(default=None, ge=0)
    adjustments: RoomAdjustments | None = None


class CustomExpense(CamelModel):
    id: str = Field(min_length=1)
    name: str
    amount: Money = Field(ge=0)


class CalculationData(CamelModel):
    total_rent: Money = Field(ge=0)
    utilities: Money = Field(default=Decimal("0"), ge=0)
    custom_expenses: list[CustomExpense] = []
    roommates: list[Roommate] = Field(min_length=1)
    currency: str = "USD"
    use_room_size_split: bool = False

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        return v.strip().upper() or "USD"


class SplitResult(CamelModel):
    roommate_id: str
    roommate_name: str
    income: Money
    basis_percentage: Money
    rent_share: Money
    utilities_share: Money
    custom_expenses_share: Money
    adjustment_amount: Money
    total_share: Money
