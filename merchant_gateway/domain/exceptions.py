"""Domain-specific exceptions"""

from datetime import datetime
from typing import Any, Dict


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class RateLimitExceededError(DomainException):
    """Caller exhausted its request budget for the current window"""

    code = "resource-exhausted"

    def __init__(self, message: str, reset_at: datetime, function_name: str = "", remaining: int = 0):
        super().__init__(message)
        self.message = message
        self.reset_at = reset_at
        self.function_name = function_name
        self.remaining = remaining

    def to_details(self) -> Dict[str, Any]:
        return {"resetAt": self.reset_at.isoformat(), "remaining": self.remaining}


class StoreError(DomainException):
    """Rate limit backing store failed"""

    pass


class StoreUnavailableError(StoreError):
    """Backing store is unreachable or rejected the operation"""

    pass


class StoreContentionError(StoreError):
    """Concurrent writers kept winning after every retry"""

    pass


class MerchantNotFoundError(DomainException):
    """No merchant document stored under the requested id"""

    pass
