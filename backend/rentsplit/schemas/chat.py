from typing import Literal

from pydantic import BaseModel

from rentsplit.schemas.calculation import CalculationData, CamelModel, Money, SplitResult


class ChatMessage(BaseModel):
    role: str
    content: str


class PatchRoommate(CamelModel):
    name: str
    income: Money | None = None
    room_size: Money | None = None


class PatchExpense(CamelModel):
    name: str
    amount: Money


class CalculationPatch(CamelModel):
    """Partial form update extracted from a chat message. Every field is optional."""
    total_rent: Money | None = None
    utilities: Money | None = None
    roommates: list[PatchRoommate] | None = None
    custom_expenses: list[PatchExpense] | None = None
    remove_roommates: list[str] | None = None
    remove_custom_expenses: list[str] | None = None
    currency: str | None = None
    use_room_size_split: bool | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class ChatRequest(CamelModel):
    message: str
    conversation_history: list[ChatMessage] = []
    current_state: dict | None = None


class ChatResponse(CamelModel):
    content: str
    parsed_data: CalculationPatch | None = None


class ChatApplyRequest(BaseModel):
    data: CalculationData
    patch: CalculationPatch


class ChatApplyResponse(BaseModel):
    data: CalculationData
    results: list[SplitResult]


class InjectionCheck(BaseModel):
    is_injection: bool
    confidence: Literal["low", "medium", "high"] = "low"
    reason: str | None = None


class ChatReply(BaseModel):
    content: str
    patch: CalculationPatch | None = None
    source: Literal["model", "rules"] = "model"
    input_tokens: int = 0
    output_tokens: int = 0

