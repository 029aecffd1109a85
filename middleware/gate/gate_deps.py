import logging
import math
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from core.config import settings
from middleware.gate.rate_limiter import RollingWindowLimiter

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)

# Shared by every processing endpoint.
limiter = RollingWindowLimiter(
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window_s=settings.RATE_LIMIT_WINDOW_SECONDS,
)


async def enforce_rate_limit(request: Request) -> None:
    """
    Counts the request against the client's window.
    Raises 429 once the client is over quota.
    """
    client = request.client.host if request.client else "unknown"
    retry_after = await limiter.hit(client)
    if retry_after > 0:
        logger.warning("Rate limit exceeded for %s", client)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests, please try again later.",
            headers={"Retry-After": str(math.ceil(retry_after))},
        )


async def require_api_key(api_key: Annotated[str | None, Depends(api_key_header)]) -> str:
    """Rejects requests whose X-API-KEY header is missing or unknown."""
    if not api_key or api_key not in settings.valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return api_key


# Rate limit first, then the key check; both must pass.
gate_dependencies = [Depends(enforce_rate_limit), Depends(require_api_key)]
