"""Rate limit endpoints: check for other services, status/reset/sweep for admins"""

from fastapi import APIRouter, Depends, Query

from merchant_gateway.api.dependencies import get_rate_limiter
from merchant_gateway.api.v1.schemas import (
    RateLimitCheckRequest,
    RateLimitCheckResponse,
    RateLimitResetResponse,
    RateLimitStatusResponse,
    SweepResponse,
)
from merchant_gateway.domain.rate_limiter import RateLimiter
from merchant_gateway.domain.rate_limits import get_rate_limit

router = APIRouter()


@router.post("/rate-limits/check", response_model=RateLimitCheckResponse)
async def check_rate_limit(body: RateLimitCheckRequest, limiter: RateLimiter = Depends(get_rate_limiter)):
    """
    Count one request for a caller of another service (e.g. the OTP sender).

    Always 200: the caller decides what to do with allowed=false.
    """
    result = await limiter.check(body.function_name, body.identifier, get_rate_limit(body.category))
    return RateLimitCheckResponse(
        allowed=result.allowed,
        remaining=result.remaining,
        reset_at=result.reset_at,
        limit=result.limit,
    )


@router.get("/rate-limits/{function_name}/{identifier}", response_model=RateLimitStatusResponse)
async def get_rate_limit_status(
    function_name: str,
    identifier: str,
    category: str = Query("DEFAULT", description="Predefined limit the usage is measured against"),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Current usage without counting a request"""
    status = await limiter.status(function_name, identifier, get_rate_limit(category))
    return RateLimitStatusResponse(
        function_name=function_name,
        identifier=identifier,
        current=status.current,
        limit=status.limit,
        remaining=status.remaining,
        reset_at=status.reset_at,
    )


@router.delete("/rate-limits/{function_name}/{identifier}", response_model=RateLimitResetResponse)
async def reset_rate_limit(function_name: str, identifier: str, limiter: RateLimiter = Depends(get_rate_limiter)):
    """Clear a caller's counter (e.g. after support verified a locked-out user)"""
    return RateLimitResetResponse(reset=await limiter.reset(function_name, identifier))


@router.post("/rate-limits/sweep", response_model=SweepResponse)
async def sweep_rate_limits(limiter: RateLimiter = Depends(get_rate_limiter)):
    """Delete one batch of idle records"""
    return SweepResponse(deleted=await limiter.sweep())
