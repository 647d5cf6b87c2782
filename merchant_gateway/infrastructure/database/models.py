"""SQLAlchemy ORM models"""

from sqlalchemy import Column, String, BigInteger, Integer, DateTime, Text, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class RateLimitRow(Base):
    """Request log for one function + identifier, keyed by the sanitized key"""

    __tablename__ = "rate_limit"

    id = Column(String(512), primary_key=True)
    identifier = Column(Text, nullable=False)
    function_name = Column(Text, nullable=False)
    requests = Column(JSON, nullable=False, default=list)  # epoch ms, arrival order
    created_at_ms = Column(BigInteger, nullable=False)
    updated_at_ms = Column(BigInteger, nullable=False, index=True)
    version = Column(Integer, nullable=False)

    # Optimistic concurrency: UPDATE ... WHERE version = :seen, StaleDataError on mismatch
    __mapper_args__ = {"version_id_col": version}


class MerchantRecord(Base):
    """Merchant document as written by the admin dashboard (camelCase JSON)"""

    __tablename__ = "merchant"

    merchant_id = Column(String(128), primary_key=True)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
