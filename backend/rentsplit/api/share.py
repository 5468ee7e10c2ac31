import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from rentsplit.core.deps import get_share_store
from rentsplit.schemas.calculation import CalculationData
from rentsplit.schemas.share import ShareCreateResponse, ShareErrorResponse, ShareGetResponse, ShareTokenResponse
from rentsplit.services.share_service import InvalidShareIdError, ShareExistsError, ShareStore, is_valid_share_id
from rentsplit.utils.share_codec import ShareTokenError, compression_ratio, decode_calculation, encode_calculation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/share", tags=["share"])

_ERRORS = {400: {"model": ShareErrorResponse}, 404: {"model": ShareErrorResponse}, 409: {"model": ShareErrorResponse}}


def _error(status_code: int, error: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "code": code})


@router.post("", response_model=ShareCreateResponse, responses=_ERRORS)
async def create_share(
    body: dict = Body(...),
    store: ShareStore = Depends(get_share_store),
):
    share_id = body.get("id")
    raw_data = body.get("data")
    if not share_id or not raw_data:
        return _error(400, "Missing required fields: id and data", "MISSING_FIELDS")

    if not is_valid_share_id(share_id):
        return _error(400, "Invalid ID format. Must contain only alphanumeric characters", "INVALID_ID")

    try:
        data = CalculationData.model_validate(raw_data)
    except ValidationError as e:
        logger.info(f"Rejected share {share_id}: {e.error_count()} validation error(s)")
        return _error(400, "Invalid data structure. Please check all fields are valid.", "INVALID_DATA")

    try:
        record = store.save(share_id, data)
    except ShareExistsError as e:
        return _error(409, str(e), "ID_EXISTS")
    except InvalidShareIdError as e:
        return _error(400, str(e), "INVALID_ID")

    return ShareCreateResponse(id=record.id, created_at=record.created_at)


@router.get("", response_model=ShareGetResponse, responses=_ERRORS)
async def get_share(
    id: Optional[str] = Query(None),
    store: ShareStore = Depends(get_share_store),
):
    if not id:
        return _error(400, "Missing id parameter", "MISSING_ID")
    if not is_valid_share_id(id):
        return _error(400, "Invalid ID format", "INVALID_ID")

    record = store.get(id)
    if record is None:
        return _error(404, "Share data not found", "NOT_FOUND")
    return ShareGetResponse(data=record.data, created_at=record.created_at)


@router.post("/token", response_model=ShareTokenResponse)
async def create_token(body: CalculationData):
    return ShareTokenResponse(token=encode_calculation(body), **compression_ratio(body))


@router.get("/token/{token}", response_model=CalculationData, responses={400: {"model": ShareErrorResponse}})
async def read_token(token: str):
    try:
        return decode_calculation(token)
    except ShareTokenError as e:
        logger.info(str(e))
        return _error(400, "Invalid or corrupted share token", "INVALID_TOKEN")
