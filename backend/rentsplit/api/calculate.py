from typing import Optional

from fastapi import APIRouter, Query

from rentsplit.schemas.calculation import CalculationData, SplitResult
from rentsplit.services.allocation_service import compute

router = APIRouter(prefix="/api/calculate", tags=["calculate"])


@router.post("", response_model=list[SplitResult])
async def calculate(
    body: CalculationData,
    use_room_size_split: Optional[bool] = Query(None),
):
    # Query flag wins over the one stored with the data
    return compute(body, use_room_size_split)
