"""Sliding-window rate limiter over a pluggable record store"""

import asyncio
import logging
import math
import re
import time
from typing import List, Optional, Tuple

from merchant_gateway.config import settings
from merchant_gateway.domain.exceptions import RateLimitExceededError, StoreError
from merchant_gateway.domain.models import (
    CallContext,
    IdentifierType,
    RateLimitConfig,
    RateLimitRecord,
    RateLimitResult,
    RateLimitStatus,
)
from merchant_gateway.infrastructure.observability.logging import hash_identifier, log_rate_limit_decision
from merchant_gateway.infrastructure.observability.metrics import (
    rate_limit_decision_counter,
    rate_limit_store_latency_histogram,
    rate_limit_swept_counter,
)
from merchant_gateway.infrastructure.rate_limit_store.base import AbstractRateLimitStore
from merchant_gateway.utils.date_utils import from_millis

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_-]")

HOUR_MS = 60 * 60 * 1000


def build_rate_limit_key(function_name: str, identifier: str) -> str:
    """Storage key for a function + identifier pair, safe as a record id in any store"""
    if not function_name or not identifier:
        raise ValueError("function_name and identifier must be non-empty strings")
    return _UNSAFE_KEY_CHARS.sub("_", f"{function_name}_{identifier}")


def get_rate_limit_identifier(
    context: CallContext,
    identifier_type: IdentifierType = IdentifierType.USER,
    custom_id: Optional[str] = None,
) -> str:
    """Resolve which counter a call is charged to"""
    if identifier_type == IdentifierType.USER:
        return context.uid or context.ip or "anonymous"
    if identifier_type == IdentifierType.IP:
        return context.ip or "unknown-ip"
    if identifier_type == IdentifierType.PHONE_NUMBER:
        return custom_id or context.phone_number or context.ip or "unknown"
    if identifier_type == IdentifierType.MERCHANT:
        return context.uid or context.ip or "anonymous-merchant"
    if identifier_type == IdentifierType.GLOBAL:
        return "global"
    return context.ip or "unknown"


def _requests_in_window(record: Optional[RateLimitRecord], window_start_ms: int) -> List[int]:
    if record is None:
        return []
    return [ts for ts in record.requests if ts > window_start_ms]


def _reset_at_ms(requests: List[int], now_ms: int, window_ms: int) -> int:
    return requests[0] + window_ms if requests else now_ms + window_ms


def _wall_clock_ms() -> int:
    return round(time.time() * 1000)


class RateLimiter:
    """
    Per-identifier sliding-window limiter.

    Check algorithm (one atomic store update per key):
    1. Drop request timestamps older than now - window_ms
    2. Allow when fewer than max_requests remain in the window
    3. When allowed, append now and persist; denied requests are not recorded

    Store failures fail open: the request is allowed with a full budget, so an
    outage of the store also disables limiting.
    """

    def __init__(
        self,
        store: AbstractRateLimitStore,
        timeout_seconds: float | None = None,
        retention_hours: int | None = None,
        sweep_batch_size: int | None = None,
        enabled: bool | None = None,
    ):
        self.store = store
        self.timeout_seconds = (
            settings.rate_limit_store_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.retention_hours = settings.rate_limit_retention_hours if retention_hours is None else retention_hours
        self.sweep_batch_size = (
            settings.rate_limit_sweep_batch_size if sweep_batch_size is None else sweep_batch_size
        )
        self.enabled = settings.rate_limit_enabled if enabled is None else enabled

    async def _call_store(self, operation: str, func, *args):
        """Run a blocking store call in a worker thread, bounded by the store timeout"""
        with rate_limit_store_latency_histogram.labels(operation=operation).time():
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout_seconds)

    def _fail_open(self, config: RateLimitConfig) -> RateLimitResult:
        now_ms = _wall_clock_ms()
        return RateLimitResult(
            allowed=True,
            remaining=config.max_requests,
            reset_at=from_millis(now_ms + config.window_ms),
            limit=config.max_requests,
        )

    async def check(
        self,
        function_name: str,
        identifier: str,
        config: RateLimitConfig,
        context: Optional[CallContext] = None,
    ) -> RateLimitResult:
        """
        Count one request against the identifier's budget.

        Returns:
            RateLimitResult with allowed, remaining and reset_at
        """
        key = build_rate_limit_key(function_name, identifier)

        if config.skip is not None and config.skip(context):
            rate_limit_decision_counter.labels(function=function_name, outcome="skipped").inc()
            return RateLimitResult(
                allowed=True,
                remaining=config.max_requests,
                reset_at=from_millis(_wall_clock_ms() + config.window_ms),
                limit=config.max_requests,
            )

        def mutate(record: Optional[RateLimitRecord], now_ms: int) -> Tuple[Optional[RateLimitRecord], RateLimitResult]:
            requests = _requests_in_window(record, now_ms - config.window_ms)
            current_count = len(requests)
            allowed = current_count < config.max_requests

            updated = None
            if allowed:
                requests.append(now_ms)
                updated = RateLimitRecord(
                    identifier=identifier,
                    function_name=function_name,
                    requests=requests,
                    created_at_ms=record.created_at_ms if record is not None else now_ms,
                    updated_at_ms=now_ms,
                )

            result = RateLimitResult(
                allowed=allowed,
                remaining=max(0, config.max_requests - current_count - (1 if allowed else 0)),
                reset_at=from_millis(_reset_at_ms(requests, now_ms, config.window_ms)),
                limit=config.max_requests,
            )
            return updated, result

        try:
            result = await self._call_store("check", self.store.atomic_update, key, mutate)
        except (StoreError, asyncio.TimeoutError) as e:
            logger.error(
                "Rate limit check failed, allowing request",
                exc_info=e,
                extra={"function_name": function_name, "identifier_hash": hash_identifier(identifier)},
            )
            rate_limit_decision_counter.labels(function=function_name, outcome="fail_open").inc()
            return self._fail_open(config)

        outcome = "allowed" if result.allowed else "denied"
        rate_limit_decision_counter.labels(function=function_name, outcome=outcome).inc()
        return result

    async def guard(
        self,
        function_name: str,
        config: RateLimitConfig,
        context: Optional[CallContext] = None,
        identifier_type: IdentifierType = IdentifierType.USER,
        custom_identifier: Optional[str] = None,
    ) -> Optional[RateLimitResult]:
        """
        Enforce a limit before protected work runs.

        Returns None when limiting is disabled.

        Raises:
            RateLimitExceededError: When the caller has no budget left
        """
        if not self.enabled:
            logger.info("Rate limiting disabled, skipping", extra={"function_name": function_name})
            return None

        identifier = get_rate_limit_identifier(context or CallContext(), identifier_type, custom_identifier)
        result = await self.check(function_name, identifier, config, context)

        log_rate_limit_decision(function_name, identifier, result.allowed, result.remaining, result.reset_at)

        if not result.allowed:
            reset_in_minutes = max(0, math.ceil((result.reset_at.timestamp() * 1000 - _wall_clock_ms()) / 60000))
            message = config.message or f"Rate limit exceeded. Try again in {reset_in_minutes} minute(s)."
            raise RateLimitExceededError(message, reset_at=result.reset_at, function_name=function_name)

        return result

    async def reset(self, function_name: str, identifier: str) -> bool:
        """Drop the identifier's record. Never raises; returns False on store failure"""
        try:
            key = build_rate_limit_key(function_name, identifier)
            await self._call_store("reset", self.store.delete, key)
        except (ValueError, StoreError, asyncio.TimeoutError) as e:
            logger.error("Failed to reset rate limit", exc_info=e, extra={"function_name": function_name})
            return False

        logger.info(
            "Rate limit reset",
            extra={"function_name": function_name, "identifier_hash": hash_identifier(identifier)},
        )
        return True

    async def status(self, function_name: str, identifier: str, config: RateLimitConfig) -> RateLimitStatus:
        """
        Current usage without recording a request.

        Raises:
            StoreError: When the store cannot be read
        """
        key = build_rate_limit_key(function_name, identifier)
        try:
            record = await self._call_store("status", self.store.get, key)
            now_ms = await self._call_store("status", self.store.now_ms)
        except asyncio.TimeoutError as e:
            raise StoreError("Rate limit store timed out") from e

        requests = _requests_in_window(record, now_ms - config.window_ms)
        current = len(requests)
        return RateLimitStatus(
            current=current,
            limit=config.max_requests,
            remaining=max(0, config.max_requests - current),
            reset_at=from_millis(_reset_at_ms(requests, now_ms, config.window_ms)),
        )

    async def sweep(self) -> int:
        """Delete one batch of records idle longer than the retention period"""
        now_ms = await self._call_store("sweep", self.store.now_ms)
        cutoff_ms = now_ms - self.retention_hours * HOUR_MS
        deleted = await self._call_store("sweep", self.store.delete_stale, cutoff_ms, self.sweep_batch_size)

        if deleted:
            rate_limit_swept_counter.inc(deleted)
            logger.info("Cleaned up old rate limit records", extra={"deleted": deleted})
        return deleted

    async def sweep_all(self, max_batches: int = 100) -> int:
        """Sweep batch after batch until a short batch shows nothing stale is left"""
        total = 0
        for _ in range(max_batches):
            deleted = await self.sweep()
            total += deleted
            if deleted < self.sweep_batch_size:
                break
        return total
