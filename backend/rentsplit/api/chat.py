import logging

from fastapi import APIRouter, Depends, HTTPException, status

from rentsplit.core.deps import enforce_rate_limit, get_chat_service
from rentsplit.schemas.chat import ChatApplyRequest, ChatApplyResponse, ChatRequest, ChatResponse
from rentsplit.services.allocation_service import compute
from rentsplit.services.chat_service import ChatService, ChatThrottledError
from rentsplit.services.patch_service import PatchError, apply_patch
from rentsplit.utils.security import (
    detect_prompt_injection, sanitize_input, validate_conversation_history, validate_message_length,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(
    body: ChatRequest,
    client_ip: str = Depends(enforce_rate_limit),
    service: ChatService = Depends(get_chat_service),
):
    message = sanitize_input(body.message)
    length_error = validate_message_length(message)
    if length_error:
        raise HTTPException(status_code=400, detail=length_error)

    check = detect_prompt_injection(message)
    if check.is_injection and check.confidence == "high":
        logger.warning(f"Blocked prompt injection from {client_ip}: {check.reason}")
        raise HTTPException(
            status_code=400,
            detail="I can only help with rent splitting questions. Please rephrase your message.",
        )

    try:
        history = validate_conversation_history(body.conversation_history)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        reply = await service.reply(message, history, body.current_state)
    except ChatThrottledError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="The assistant is busy. Please try again shortly.",
            headers={"Retry-After": str(max(1, round(e.wait_seconds)))},
        )

    return ChatResponse(content=reply.content, parsed_data=reply.patch)


@router.post("/apply", response_model=ChatApplyResponse)
async def apply(body: ChatApplyRequest):
    try:
        merged = apply_patch(body.data, body.patch)
    except PatchError as e:
        raise HTTPException(status_code=400, detail={"error": str(e), "code": "PATCH_ERROR"})
    return ChatApplyResponse(data=merged, results=compute(merged))
