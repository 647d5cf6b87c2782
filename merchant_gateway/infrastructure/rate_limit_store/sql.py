"""SQLAlchemy-backed rate limit store shared by every service instance"""

import logging
import time
from typing import Callable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from merchant_gateway.config import settings
from merchant_gateway.domain.exceptions import StoreContentionError, StoreUnavailableError
from merchant_gateway.domain.models import RateLimitRecord
from merchant_gateway.infrastructure.database.models import RateLimitRow
from merchant_gateway.infrastructure.rate_limit_store.base import AbstractRateLimitStore, Mutation, T
from merchant_gateway.utils.date_utils import to_millis

logger = logging.getLogger(__name__)


def _to_record(row: RateLimitRow) -> RateLimitRecord:
    return RateLimitRecord(
        identifier=row.identifier,
        function_name=row.function_name,
        requests=[int(ts) for ts in (row.requests or [])],
        created_at_ms=row.created_at_ms,
        updated_at_ms=row.updated_at_ms,
    )


class SqlRateLimitStore(AbstractRateLimitStore):
    """
    Rate limit records in the `rate_limit` table.

    Read-modify-write is made atomic with optimistic concurrency:
    - concurrent update of an existing row -> StaleDataError (version mismatch)
    - concurrent first insert of a key -> IntegrityError (primary key)
    Both roll back and re-run the mutation against fresh state, up to max_retries.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_retries: int | None = None,
        use_server_time: bool | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._session_factory = session_factory
        self._max_retries = settings.rate_limit_max_retries if max_retries is None else max_retries
        self._use_server_time = settings.rate_limit_use_server_time if use_server_time is None else use_server_time
        self._clock = clock

    def _now_ms(self, session: Session) -> int:
        if self._use_server_time:
            return to_millis(session.execute(select(func.now())).scalar_one())
        return round(self._clock() * 1000)

    def now_ms(self) -> int:
        if not self._use_server_time:
            return round(self._clock() * 1000)
        session = self._session_factory()
        try:
            return self._now_ms(session)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Rate limit store unavailable: {e}") from e
        finally:
            session.close()

    def atomic_update(self, key: str, mutate: Mutation[T]) -> T:
        for attempt in range(self._max_retries + 1):
            session = self._session_factory()
            try:
                now_ms = self._now_ms(session)
                row = session.get(RateLimitRow, key)
                current = _to_record(row) if row is not None else None

                record, result = mutate(current, now_ms)

                if record is None:
                    session.rollback()
                    return result

                if row is None:
                    session.add(
                        RateLimitRow(
                            id=key,
                            identifier=record.identifier,
                            function_name=record.function_name,
                            requests=list(record.requests),
                            created_at_ms=record.created_at_ms,
                            updated_at_ms=record.updated_at_ms,
                        )
                    )
                else:
                    row.requests = list(record.requests)
                    row.updated_at_ms = record.updated_at_ms
                session.commit()
                return result

            except (StaleDataError, IntegrityError):
                session.rollback()
                logger.debug("Rate limit write conflict", extra={"attempt": attempt + 1})
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreUnavailableError(f"Rate limit store unavailable: {e}") from e
            finally:
                session.close()

        raise StoreContentionError(f"Gave up after {self._max_retries + 1} conflicting writes")

    def get(self, key: str) -> Optional[RateLimitRecord]:
        session = self._session_factory()
        try:
            row = session.get(RateLimitRow, key)
            return _to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Rate limit store unavailable: {e}") from e
        finally:
            session.close()

    def delete(self, key: str) -> None:
        session = self._session_factory()
        try:
            session.execute(delete(RateLimitRow).where(RateLimitRow.id == key))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailableError(f"Rate limit store unavailable: {e}") from e
        finally:
            session.close()

    def delete_stale(self, cutoff_ms: int, limit: int) -> int:
        session = self._session_factory()
        try:
            stale_ids = session.execute(
                select(RateLimitRow.id)
                .where(RateLimitRow.updated_at_ms < cutoff_ms)
                .order_by(RateLimitRow.updated_at_ms)
                .limit(limit)
            ).scalars().all()

            if not stale_ids:
                return 0

            # Re-check the cutoff so a record refreshed since the select survives
            result = session.execute(
                delete(RateLimitRow)
                .where(RateLimitRow.id.in_(stale_ids))
                .where(RateLimitRow.updated_at_ms < cutoff_ms)
            )
            session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailableError(f"Rate limit store unavailable: {e}") from e
        finally:
            session.close()
