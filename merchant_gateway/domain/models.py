"""Domain models - pure Python dataclasses representing business entities"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from merchant_gateway.utils.date_utils import parse_timestamp


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


class IdentifierType(str, Enum):
    """What a rate limit counter is scoped to"""

    USER = "user"
    IP = "ip"
    PHONE_NUMBER = "phone_number"
    MERCHANT = "merchant"
    GLOBAL = "global"


@dataclass(frozen=True)
class CallContext:
    """Caller information available to identifier resolution and skip predicates"""

    uid: Optional[str] = None
    ip: Optional[str] = None
    phone_number: Optional[str] = None


@dataclass(frozen=True)
class RateLimitConfig:
    """Ceiling of max_requests per rolling window of window_ms milliseconds"""

    max_requests: int
    window_ms: int
    message: Optional[str] = None
    skip: Optional[Callable[[Optional[CallContext]], bool]] = None

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")


@dataclass
class RateLimitRecord:
    """Stored request log for one function + identifier pair"""

    identifier: str
    function_name: str
    requests: List[int]  # epoch ms, arrival order
    created_at_ms: int
    updated_at_ms: int


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check"""

    allowed: bool
    remaining: int
    reset_at: datetime
    limit: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "resetAt": self.reset_at.isoformat(),
            "limit": self.limit,
        }


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only view of current usage"""

    current: int
    limit: int
    remaining: int
    reset_at: datetime


# ---------------------------------------------------------------------------
# Merchants
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return value


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


@dataclass
class KYCInfo:
    status: Optional[str] = None
    documents_submitted: int = 0
    documents_verified: int = 0
    submitted_at: Optional[datetime] = None


@dataclass
class ContactInfo:
    email: str = ""
    phone: str = ""


@dataclass
class Address:
    street: str = ""
    city: str = ""
    region: str = ""
    country: str = ""


@dataclass
class Financials:
    total_transactions: float = 0
    total_revenue: float = 0
    monthly_volume: float = 0


@dataclass
class BankDetails:
    account_number: str = ""
    bank_name: str = ""
    account_name: str = ""


@dataclass
class MobileMoneyWallet:
    number: str = ""
    provider: str = ""


@dataclass
class TransactionLimits:
    daily_limit: float
    monthly_limit: float
    max_invoice_amount: float


@dataclass
class AdminMetadata:
    flags: List[str] = field(default_factory=list)
    transaction_limits: Optional[TransactionLimits] = None


@dataclass
class Merchant:
    """Merchant snapshot consumed by the risk scorer"""

    merchant_id: str = ""
    business_name: str = ""
    business_type: str = ""
    registration_number: str = ""
    tax_id: str = ""
    status: Optional[str] = None  # pending | active | suspended | rejected | closed
    subscription_plan_id: str = ""
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    address: Address = field(default_factory=Address)
    kyc: KYCInfo = field(default_factory=KYCInfo)
    financials: Financials = field(default_factory=Financials)
    bank_details: Optional[BankDetails] = None
    mobile_money_wallet: Optional[MobileMoneyWallet] = None
    admin_metadata: AdminMetadata = field(default_factory=AdminMetadata)
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any], merchant_id: str = "") -> "Merchant":
        """
        Build a Merchant from a stored merchant document (camelCase keys).

        Flat fields win; businessInfo.* and location.* are used as fallbacks.
        Missing or mistyped fields fall back to neutral defaults.
        """
        doc = _mapping(doc)
        business = _mapping(doc.get("businessInfo"))
        location = _mapping(doc.get("location"))
        contact = _mapping(doc.get("contactInfo"))
        address = _mapping(doc.get("address"))
        kyc = _mapping(doc.get("kyc"))
        financials = _mapping(doc.get("financials"))
        admin = _mapping(doc.get("adminMetadata"))
        subscription = _mapping(doc.get("subscription"))

        bank_details = None
        if isinstance(doc.get("bankDetails"), Mapping):
            bank = doc["bankDetails"]
            bank_details = BankDetails(
                account_number=_text(bank.get("accountNumber")),
                bank_name=_text(bank.get("bankName")),
                account_name=_text(bank.get("accountName")),
            )

        wallet = None
        if isinstance(doc.get("mobileMoneyWallet"), Mapping):
            momo = doc["mobileMoneyWallet"]
            wallet = MobileMoneyWallet(
                number=_text(momo.get("number")),
                provider=_text(momo.get("provider")),
            )

        limits = None
        raw_limits = admin.get("transactionLimits")
        if isinstance(raw_limits, Mapping):
            limits = TransactionLimits(
                daily_limit=_number(raw_limits.get("dailyLimit")),
                monthly_limit=_number(raw_limits.get("monthlyLimit")),
                max_invoice_amount=_number(raw_limits.get("maxInvoiceAmount")),
            )

        raw_flags = admin.get("flags")
        flags = [f for f in raw_flags if isinstance(f, str)] if isinstance(raw_flags, list) else []

        status = doc.get("status")
        kyc_status = kyc.get("status")

        return cls(
            merchant_id=_text(doc.get("merchantId")) or merchant_id,
            business_name=_text(doc.get("businessName")) or _text(business.get("businessName")),
            business_type=_text(doc.get("businessType")) or _text(business.get("businessType")),
            registration_number=_text(doc.get("registrationNumber"))
            or _text(business.get("registrationNumber")),
            tax_id=_text(doc.get("taxId")) or _text(business.get("taxId")),
            status=status if isinstance(status, str) else None,
            subscription_plan_id=_text(subscription.get("planId")),
            contact_info=ContactInfo(
                email=_text(contact.get("email")) or _text(business.get("email")),
                phone=_text(contact.get("phone")) or _text(business.get("phoneNumber")),
            ),
            address=Address(
                street=_text(address.get("street")) or _text(location.get("address")),
                city=_text(address.get("city")) or _text(location.get("city")),
                region=_text(address.get("region")) or _text(location.get("region")),
                country=_text(address.get("country")) or _text(location.get("country")),
            ),
            kyc=KYCInfo(
                status=kyc_status if isinstance(kyc_status, str) else None,
                documents_submitted=int(_number(kyc.get("documentsSubmitted"))),
                documents_verified=int(_number(kyc.get("documentsVerified"))),
                submitted_at=parse_timestamp(kyc.get("submittedAt")),
            ),
            financials=Financials(
                total_transactions=_number(financials.get("totalTransactions")),
                total_revenue=_number(financials.get("totalRevenue")),
                monthly_volume=_number(financials.get("monthlyVolume")),
            ),
            bank_details=bank_details,
            mobile_money_wallet=wallet,
            admin_metadata=AdminMetadata(flags=flags, transaction_limits=limits),
            created_at=parse_timestamp(doc.get("createdAt")),
        )


# ---------------------------------------------------------------------------
# Risk scoring output
# ---------------------------------------------------------------------------


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class RiskComponents:
    """Sub-scores, each 0-100 (higher is riskier)"""

    kyc_score: int
    business_maturity_score: int
    transaction_score: int
    compliance_score: int
    flags_score: int


@dataclass(frozen=True)
class RiskScoreBreakdown:
    """Output of a merchant risk assessment"""

    total_score: int
    level: RiskLevel
    components: RiskComponents
    factors: List[str]
    recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "level": self.level.value,
            "components": {
                "kycScore": self.components.kyc_score,
                "businessMaturityScore": self.components.business_maturity_score,
                "transactionScore": self.components.transaction_score,
                "complianceScore": self.components.compliance_score,
                "flagsScore": self.components.flags_score,
            },
            "factors": list(self.factors),
            "recommendations": list(self.recommendations),
        }
