"""Merchant risk assessment endpoints"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from merchant_gateway.api.dependencies import get_request_id, get_risk_scorer, rate_limit
from merchant_gateway.api.v1.schemas import (
    AdminMetadataResponse,
    MerchantDocument,
    MerchantStoredResponse,
    RiskComponentsSchema,
    RiskLevelUpdate,
    RiskScoreResponse,
    TransactionLimitsSchema,
)
from merchant_gateway.domain.models import IdentifierType, Merchant, RiskScoreBreakdown
from merchant_gateway.domain.risk_scoring import RiskScorer
from merchant_gateway.infrastructure.database.repositories import MerchantRepository
from merchant_gateway.infrastructure.database.session import get_db
from merchant_gateway.infrastructure.observability.logging import log_risk_assessment
from merchant_gateway.infrastructure.observability.metrics import record_risk_assessment

router = APIRouter()


def _assess(scorer: RiskScorer, merchant: Merchant, request_id: str) -> RiskScoreResponse:
    start_time = time.time()
    breakdown: RiskScoreBreakdown = scorer.score(merchant)
    duration_ms = (time.time() - start_time) * 1000

    record_risk_assessment(breakdown.total_score, breakdown.level.value)
    log_risk_assessment(request_id, merchant.merchant_id, breakdown.total_score, breakdown.level.value, duration_ms)

    components = breakdown.components
    return RiskScoreResponse(
        merchant_id=merchant.merchant_id or None,
        total_score=breakdown.total_score,
        level=breakdown.level,
        components=RiskComponentsSchema(
            kyc_score=components.kyc_score,
            business_maturity_score=components.business_maturity_score,
            transaction_score=components.transaction_score,
            compliance_score=components.compliance_score,
            flags_score=components.flags_score,
        ),
        factors=breakdown.factors,
        recommendations=breakdown.recommendations,
    )


@router.post(
    "/risk-score",
    response_model=RiskScoreResponse,
    dependencies=[Depends(rate_limit("scoreMerchant", "API_READ", IdentifierType.IP))],
)
def score_merchant_document(
    body: MerchantDocument,
    request: Request,
    scorer: RiskScorer = Depends(get_risk_scorer),
):
    """Score an unsaved merchant document (e.g. while an admin edits it)"""
    merchant = Merchant.from_document(body.to_document())
    return _assess(scorer, merchant, get_request_id(request))


@router.put(
    "/merchants/{merchant_id}",
    response_model=MerchantStoredResponse,
    dependencies=[Depends(rate_limit("saveMerchant", "API_WRITE", IdentifierType.MERCHANT))],
)
def save_merchant(merchant_id: str, body: MerchantDocument, db: Session = Depends(get_db)):
    """Create or replace a merchant document"""
    document = body.to_document()
    document["merchantId"] = merchant_id
    MerchantRepository(db).upsert(merchant_id, document)
    db.commit()
    return MerchantStoredResponse(merchant_id=merchant_id)


@router.get(
    "/merchants/{merchant_id}/risk-score",
    response_model=RiskScoreResponse,
    dependencies=[Depends(rate_limit("getMerchantRiskScore", "API_READ", IdentifierType.USER))],
)
def get_merchant_risk_score(
    merchant_id: str,
    request: Request,
    db: Session = Depends(get_db),
    scorer: RiskScorer = Depends(get_risk_scorer),
):
    """
    Compute the current risk breakdown for a stored merchant.

    Scores are not persisted; every call reflects the latest document.
    """
    merchant = MerchantRepository(db).get_merchant(merchant_id)
    return _assess(scorer, merchant, get_request_id(request))


@router.put(
    "/merchants/{merchant_id}/risk-level",
    response_model=AdminMetadataResponse,
    dependencies=[Depends(rate_limit("updateMerchantRiskLevel", "ADMIN_OPERATION", IdentifierType.USER))],
)
def update_risk_level(merchant_id: str, body: RiskLevelUpdate, db: Session = Depends(get_db)):
    """Record an admin's manual risk tier decision"""
    admin_metadata = MerchantRepository(db).update_admin_metadata(
        merchant_id,
        {
            "riskAssessment": {
                "level": body.level.value,
                "reviewedBy": body.reviewed_by,
                "lastReviewDate": datetime.now(timezone.utc).isoformat(),
            }
        },
    )["adminMetadata"]
    db.commit()
    return AdminMetadataResponse(merchant_id=merchant_id, admin_metadata=admin_metadata)


@router.put(
    "/merchants/{merchant_id}/transaction-limits",
    response_model=AdminMetadataResponse,
    dependencies=[Depends(rate_limit("updateTransactionLimits", "ADMIN_OPERATION", IdentifierType.USER))],
)
def update_transaction_limits(merchant_id: str, body: TransactionLimitsSchema, db: Session = Depends(get_db)):
    """Set the daily, monthly and per-invoice ceilings for a merchant"""
    admin_metadata = MerchantRepository(db).update_admin_metadata(
        merchant_id,
        {"transactionLimits": body.model_dump(by_alias=True)},
    )["adminMetadata"]
    db.commit()
    return AdminMetadataResponse(merchant_id=merchant_id, admin_metadata=admin_metadata)
