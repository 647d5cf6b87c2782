"""Merchant risk scoring engine - pure functions over a Merchant snapshot"""

import math
from datetime import datetime, timezone
from typing import Callable, List, Optional

from merchant_gateway.config import settings
from merchant_gateway.domain.models import Merchant, RiskComponents, RiskLevel, RiskScoreBreakdown
from merchant_gateway.utils.date_utils import days_between

# Component weights (sum to 1.0)
KYC_WEIGHT = 0.3
BUSINESS_MATURITY_WEIGHT = 0.2
TRANSACTION_WEIGHT = 0.25
COMPLIANCE_WEIGHT = 0.15
FLAGS_WEIGHT = 0.1

KYC_STATUS_PENALTY = {
    "approved": 0,
    "under_review": 15,
    "submitted": 15,
    "pending": 30,
    "expired": 45,
    "rejected": 50,
}
KYC_UNKNOWN_STATUS_PENALTY = 40

MERCHANT_STATUS_PENALTY = {
    "active": 0,
    "pending": 20,
    "suspended": 60,
    "rejected": 80,
    "closed": 100,
}

HIGH_RISK_BUSINESS_TYPES = ("crypto", "gambling", "adult", "forex", "cannabis")
MEDIUM_RISK_BUSINESS_TYPES = ("marketplace", "crowdfunding", "subscription")
CRITICAL_FLAG_KEYWORDS = ("fraud", "suspicious", "aml")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clip(score: float) -> int:
    return int(min(100, max(0, score)))


def _is_blank(value: Optional[str]) -> bool:
    return not value or value.strip() == ""


def _average_transaction_size(merchant: Merchant) -> float:
    total = merchant.financials.total_transactions
    return merchant.financials.total_revenue / total if total > 0 else 0.0


def calculate_kyc_score(merchant: Merchant, now: datetime, required_documents: int | None = None) -> int:
    """
    KYC score (0-100, higher is riskier).

    - Status: approved 0, under_review/submitted 15, pending 30, expired 45,
      rejected 50, anything else 40
    - Document completeness: up to 30 for missing required documents (negative
      when more than the required count were submitted)
    - Verification rate: up to 20 for unverified submissions (flat 20 when none submitted)
    - Stale submission: +10 past 90 days, +5 past 30 days
    """
    kyc = merchant.kyc
    required = required_documents or settings.kyc_required_documents
    score = KYC_STATUS_PENALTY.get(kyc.status or "", KYC_UNKNOWN_STATUS_PENALTY)

    submitted = kyc.documents_submitted
    completeness = submitted / required
    score += _round_half_up((1 - completeness) * 30)

    if submitted > 0:
        verification_rate = kyc.documents_verified / submitted
        score += _round_half_up((1 - verification_rate) * 20)
    else:
        score += 20

    if kyc.submitted_at is not None:
        days_since_submission = days_between(kyc.submitted_at, now)
        if days_since_submission > 90:
            score += 10
        elif days_since_submission > 30:
            score += 5

    return _clip(score)


def calculate_business_maturity_score(merchant: Merchant, now: datetime) -> int:
    """
    Business maturity score (0-100, higher is riskier).

    Account age step function, registration/tax paperwork, business type
    risk profile and contact details.
    """
    score = 0

    if merchant.created_at is not None:
        account_age_days = days_between(merchant.created_at, now)
        if account_age_days < 7:
            score += 25
        elif account_age_days < 30:
            score += 20
        elif account_age_days < 90:
            score += 10
        elif account_age_days < 180:
            score += 5
    else:
        score += 15

    if _is_blank(merchant.registration_number):
        score += 25
    elif _is_blank(merchant.tax_id):
        score += 15

    business_type = merchant.business_type.lower()
    if any(keyword in business_type for keyword in HIGH_RISK_BUSINESS_TYPES):
        score += 25
    elif any(keyword in business_type for keyword in MEDIUM_RISK_BUSINESS_TYPES):
        score += 15

    if _is_blank(merchant.contact_info.email):
        score += 15
    if _is_blank(merchant.contact_info.phone):
        score += 10

    return _clip(score)


def calculate_transaction_score(merchant: Merchant) -> int:
    """
    Transaction score (0-100, higher is riskier).

    Thin history, a monthly volume spike against the historical average,
    and large average ticket size.
    """
    score = 0
    total_transactions = merchant.financials.total_transactions
    monthly_volume = merchant.financials.monthly_volume

    if total_transactions <= 0:
        score += 20
    elif total_transactions < 10:
        score += 15
    elif total_transactions < 50:
        score += 10

    if total_transactions > 0:
        avg_size = _average_transaction_size(merchant)

        if monthly_volume > 0:
            monthly_transaction_estimate = monthly_volume / (avg_size or 1)
            if monthly_transaction_estimate > total_transactions * 2:
                score += 30

        if avg_size > 50000:
            score += 25
        elif avg_size > 20000:
            score += 15
        elif avg_size > 10000:
            score += 10

    return _clip(score)


def calculate_compliance_score(merchant: Merchant) -> int:
    """
    Compliance score (0-100, higher is riskier).

    Account status, address completeness and configured payout method.
    Statuses outside the known set carry no penalty.
    """
    score = MERCHANT_STATUS_PENALTY.get(merchant.status or "", 0)

    address = merchant.address
    for part in (address.street, address.city, address.country):
        if _is_blank(part):
            score += 10

    bank = merchant.bank_details
    wallet = merchant.mobile_money_wallet
    has_bank_details = bank is not None and bool(bank.account_number) and bool(bank.bank_name)
    has_mobile_money = wallet is not None and bool(wallet.number) and bool(wallet.provider)

    if not has_bank_details and not has_mobile_money:
        score += 30
    elif not has_bank_details:
        score += 10  # Mobile money only

    return _clip(score)


def calculate_flags_score(merchant: Merchant) -> int:
    """Flags score: 15 per flag (max 50) plus 25 per critical flag (max 50)"""
    flags = merchant.admin_metadata.flags
    critical_flags = [
        flag for flag in flags
        if any(keyword in flag.lower() for keyword in CRITICAL_FLAG_KEYWORDS)
    ]
    score = min(50, len(flags) * 15) + min(50, len(critical_flags) * 25)
    return _clip(score)


def get_risk_level(score: int) -> RiskLevel:
    """
    Map total score to a tier.

    - 76-100: critical
    - 51-75: high
    - 26-50: medium
    - 0-25: low
    """
    if score >= 76:
        return RiskLevel.CRITICAL
    if score >= 51:
        return RiskLevel.HIGH
    if score >= 26:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def identify_risk_factors(merchant: Merchant, components: RiskComponents, now: datetime) -> List[str]:
    """Explain which inputs drove the elevated components"""
    factors: List[str] = []
    kyc = merchant.kyc

    if components.kyc_score > 40:
        if kyc.status == "rejected":
            factors.append("KYC documents were rejected")
        elif kyc.status == "expired":
            factors.append("KYC documents have expired")
        elif not kyc.status or kyc.status == "pending":
            factors.append("KYC process not completed")

        if kyc.documents_submitted < 4:
            factors.append("Insufficient KYC documents submitted")

    if components.business_maturity_score > 40:
        if merchant.created_at is not None and days_between(merchant.created_at, now) < 30:
            factors.append("New merchant account (less than 30 days old)")
        if _is_blank(merchant.registration_number):
            factors.append("Missing business registration number")

    if components.transaction_score > 40:
        if merchant.financials.total_transactions <= 0:
            factors.append("No transaction history")
        if _average_transaction_size(merchant) > 20000:
            factors.append("High average transaction value")

    if components.compliance_score > 40:
        if merchant.status == "suspended":
            factors.append("Merchant account is suspended")
        elif merchant.status == "pending":
            factors.append("Merchant account pending approval")

        if _is_blank(merchant.address.street) or _is_blank(merchant.address.city):
            factors.append("Incomplete business address information")

    if components.flags_score > 20:
        flag_count = len(merchant.admin_metadata.flags)
        factors.append(f"{flag_count} active risk flag{'s' if flag_count > 1 else ''}")

    return factors


def generate_recommendations(merchant: Merchant, level: RiskLevel) -> List[str]:
    """Suggested admin actions for the assessed tier and merchant state"""
    recommendations: List[str] = []
    elevated = level in (RiskLevel.HIGH, RiskLevel.CRITICAL)

    if elevated:
        recommendations.append("Immediate manual review required")
        recommendations.append("Consider imposing transaction limits")
        if merchant.status == "active":
            recommendations.append("Consider suspending account until review is complete")

    if merchant.kyc.status != "approved":
        recommendations.append("Request complete KYC documentation")

    if merchant.kyc.documents_submitted < merchant.kyc.documents_verified + 2:
        recommendations.append("Verify submitted KYC documents")

    if _is_blank(merchant.registration_number):
        recommendations.append("Request business registration certificate")

    if _is_blank(merchant.tax_id):
        recommendations.append("Request tax identification number")

    if merchant.financials.total_transactions <= 0:
        recommendations.append("Monitor first transactions closely")

    if elevated:
        if merchant.admin_metadata.transaction_limits is None:
            recommendations.append("Set conservative transaction limits")
    elif level == RiskLevel.MEDIUM:
        recommendations.append("Review and adjust transaction limits as needed")

    if merchant.admin_metadata.flags:
        recommendations.append("Investigate and resolve active risk flags")

    if _is_blank(merchant.address.street) or _is_blank(merchant.address.city):
        recommendations.append("Request complete business address")

    return recommendations


def calculate_risk_score(merchant: Merchant, now: datetime | None = None) -> RiskScoreBreakdown:
    """
    Main entry point: score a merchant snapshot.

    Weights: KYC 30%, business maturity 20%, transactions 25%,
    compliance 15%, flags 10%. Each component is clipped to 0-100 first.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    components = RiskComponents(
        kyc_score=calculate_kyc_score(merchant, now),
        business_maturity_score=calculate_business_maturity_score(merchant, now),
        transaction_score=calculate_transaction_score(merchant),
        compliance_score=calculate_compliance_score(merchant),
        flags_score=calculate_flags_score(merchant),
    )

    total_score = _round_half_up(
        components.kyc_score * KYC_WEIGHT
        + components.business_maturity_score * BUSINESS_MATURITY_WEIGHT
        + components.transaction_score * TRANSACTION_WEIGHT
        + components.compliance_score * COMPLIANCE_WEIGHT
        + components.flags_score * FLAGS_WEIGHT
    )
    level = get_risk_level(total_score)

    return RiskScoreBreakdown(
        total_score=total_score,
        level=level,
        components=components,
        factors=identify_risk_factors(merchant, components, now),
        recommendations=generate_recommendations(merchant, level),
    )


class RiskScorer:
    """Stateless scorer with an injectable clock so repeated calls are reproducible"""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def score(self, merchant: Merchant) -> RiskScoreBreakdown:
        return calculate_risk_score(merchant, now=self._clock())
