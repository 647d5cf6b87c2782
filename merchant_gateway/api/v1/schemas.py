"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from merchant_gateway.domain.models import RiskLevel


class CamelModel(BaseModel):
    """Accepts and emits the dashboard's camelCase field names"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentModel(CamelModel):
    """Merchant document fragment; unknown keys are kept as-is"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


# ---------------------------------------------------------------------------
# Merchant documents
# ---------------------------------------------------------------------------


class KYCSchema(DocumentModel):
    status: Optional[str] = None
    documents_submitted: Optional[int] = Field(None, ge=0)
    documents_verified: Optional[int] = Field(None, ge=0)
    submitted_at: Optional[Any] = Field(None, description="ISO-8601 string or {seconds, nanoseconds}")


class ContactInfoSchema(DocumentModel):
    email: Optional[str] = None
    phone: Optional[str] = None


class AddressSchema(DocumentModel):
    street: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None


class FinancialsSchema(DocumentModel):
    total_transactions: Optional[float] = Field(None, ge=0)
    total_revenue: Optional[float] = Field(None, ge=0)
    monthly_volume: Optional[float] = Field(None, ge=0)


class BankDetailsSchema(DocumentModel):
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    account_name: Optional[str] = None


class MobileMoneyWalletSchema(DocumentModel):
    number: Optional[str] = None
    provider: Optional[str] = None


class TransactionLimitsSchema(CamelModel):
    daily_limit: float = Field(..., gt=0)
    monthly_limit: float = Field(..., gt=0)
    max_invoice_amount: float = Field(..., gt=0)


class AdminMetadataSchema(DocumentModel):
    flags: List[str] = Field(default_factory=list)
    transaction_limits: Optional[TransactionLimitsSchema] = None


class MerchantDocument(DocumentModel):
    """Merchant as stored by the admin dashboard"""

    merchant_id: Optional[str] = None
    business_name: Optional[str] = None
    business_type: Optional[str] = None
    registration_number: Optional[str] = None
    tax_id: Optional[str] = None
    status: Optional[str] = Field(None, description="pending | active | suspended | rejected | closed")
    contact_info: Optional[ContactInfoSchema] = None
    address: Optional[AddressSchema] = None
    kyc: Optional[KYCSchema] = None
    financials: Optional[FinancialsSchema] = None
    bank_details: Optional[BankDetailsSchema] = None
    mobile_money_wallet: Optional[MobileMoneyWalletSchema] = None
    admin_metadata: Optional[AdminMetadataSchema] = None
    created_at: Optional[Any] = Field(None, description="ISO-8601 string or {seconds, nanoseconds}")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class MerchantStoredResponse(CamelModel):
    merchant_id: str
    stored: bool = True


# ---------------------------------------------------------------------------
# Risk assessment
# ---------------------------------------------------------------------------


class RiskComponentsSchema(CamelModel):
    kyc_score: int
    business_maturity_score: int
    transaction_score: int
    compliance_score: int
    flags_score: int


class RiskScoreResponse(CamelModel):
    """Response for risk-score endpoints"""

    merchant_id: Optional[str] = None
    total_score: int = Field(..., ge=0, le=100)
    level: RiskLevel
    components: RiskComponentsSchema
    factors: List[str]
    recommendations: List[str]


class RiskLevelUpdate(CamelModel):
    """Manual tier override by an admin"""

    level: RiskLevel
    reviewed_by: str = Field(..., min_length=1)


class AdminMetadataResponse(CamelModel):
    merchant_id: str
    admin_metadata: dict


# ---------------------------------------------------------------------------
# Rate limits
# ---------------------------------------------------------------------------


class RateLimitCheckRequest(CamelModel):
    """Body for POST /v1/rate-limits/check"""

    function_name: str = Field(..., min_length=1)
    identifier: str = Field(..., min_length=1)
    category: str = Field("DEFAULT", description="Predefined limit, e.g. OTP_SEND")


class RateLimitCheckResponse(CamelModel):
    allowed: bool
    remaining: int = Field(..., ge=0)
    reset_at: datetime
    limit: int


class RateLimitStatusResponse(CamelModel):
    function_name: str
    identifier: str
    current: int
    limit: int
    remaining: int
    reset_at: datetime


class RateLimitResetResponse(CamelModel):
    reset: bool


class SweepResponse(CamelModel):
    deleted: int
