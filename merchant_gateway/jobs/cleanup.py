"""Daily cleanup of idle rate limit records.

Run from the scheduler (cron, Cloud Scheduler, k8s CronJob):
    python -m merchant_gateway.jobs.cleanup
"""

import asyncio
import logging

from merchant_gateway.config import settings
from merchant_gateway.domain.rate_limiter import RateLimiter
from merchant_gateway.infrastructure.database.session import SessionLocal
from merchant_gateway.infrastructure.observability.logging import setup_logging
from merchant_gateway.infrastructure.rate_limit_store.base import AbstractRateLimitStore
from merchant_gateway.infrastructure.rate_limit_store.sql import SqlRateLimitStore

logger = logging.getLogger(__name__)


async def run_cleanup(store: AbstractRateLimitStore | None = None, max_batches: int = 100) -> int:
    """Sweep every record idle longer than the retention period; returns the count deleted"""
    limiter = RateLimiter(store or SqlRateLimitStore(SessionLocal))
    deleted = await limiter.sweep_all(max_batches=max_batches)
    logger.info(
        "Rate limit cleanup finished",
        extra={"deleted": deleted, "retention_hours": limiter.retention_hours},
    )
    return deleted


def main() -> None:
    setup_logging(settings.log_level)
    asyncio.run(run_cleanup())


if __name__ == "__main__":
    main()
