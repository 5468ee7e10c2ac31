from datetime import datetime

from pydantic import BaseModel

from rentsplit.schemas.calculation import CalculationData, CamelModel


class ShareRecord(BaseModel):
    id: str
    data: CalculationData
    created_at: datetime


class ShareCreateResponse(CamelModel):
    success: bool = True
    id: str
    created_at: datetime


class ShareGetResponse(CamelModel):
    data: CalculationData
    created_at: datetime


class ShareTokenResponse(BaseModel):
    token: str
    original: int
    compressed: int
    ratio: int


class ShareErrorResponse(BaseModel):
    error: str
    code: str
