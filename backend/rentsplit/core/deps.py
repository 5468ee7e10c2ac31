from fastapi import HTTPException, Request, status

from rentsplit.services.chat_service import ChatService
from rentsplit.services.share_service import ShareStore
from rentsplit.utils.rate_limiter import RateLimiter, get_client_ip


def get_share_store(request: Request) -> ShareStore:
    return request.app.state.share_store


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


async def enforce_rate_limit(request: Request) -> str:
    """Per-client request limit. Returns the client key it counted against."""
    limiter: RateLimiter = request.app.state.rate_limiter
    fallback = request.client.host if request.client else "unknown"
    client_ip = get_client_ip(request.headers, fallback=fallback)

    result = limiter.check(client_ip)
    if not result.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please wait a moment before trying again.",
            headers={"Retry-After": str(result.retry_after)},
        )
    return client_ip
