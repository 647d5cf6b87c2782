"""Dependency injection for FastAPI endpoints"""

from typing import Callable, Optional

from fastapi import Depends, Request

from merchant_gateway.domain.models import CallContext, IdentifierType, RateLimitResult
from merchant_gateway.domain.rate_limiter import RateLimiter
from merchant_gateway.domain.rate_limits import get_rate_limit
from merchant_gateway.domain.risk_scoring import RiskScorer
from merchant_gateway.infrastructure.database.session import SessionLocal
from merchant_gateway.infrastructure.rate_limit_store.sql import SqlRateLimitStore

_rate_limiter: Optional[RateLimiter] = None


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_call_context(request: Request) -> CallContext:
    """Caller identity: authenticated user id (set by the auth proxy) and client IP"""
    return CallContext(
        uid=request.headers.get("X-User-Id") or None,
        ip=request.client.host if request.client else None,
        phone_number=request.headers.get("X-Phone-Number") or None,
    )


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter over the shared SQL store"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(SqlRateLimitStore(SessionLocal))
    return _rate_limiter


def get_risk_scorer() -> RiskScorer:
    return RiskScorer()


def rate_limit(
    function_name: str,
    category: str,
    identifier_type: IdentifierType = IdentifierType.USER,
) -> Callable:
    """
    Build a dependency that guards a route with a predefined limit.

    Usage:
        @router.post("/thing", dependencies=[Depends(rate_limit("createThing", "API_WRITE"))])
    """
    config = get_rate_limit(category)

    async def dependency(
        context: CallContext = Depends(get_call_context),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> Optional[RateLimitResult]:
        return await limiter.guard(function_name, config, context, identifier_type)

    return dependency
