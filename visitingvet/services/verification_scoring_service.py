"""
Verification risk scoring
Heuristic 0-100 score used to prioritize manual review of submitted documents
"""

import logging
from datetime import date, datetime
from typing import Optional

from ..constants import RECOGNIZED_DOCUMENT_TYPES
from ..models import User, VerificationRequest

logger = logging.getLogger(__name__)

HIGH_RISK_THRESHOLD = 60
MEDIUM_RISK_THRESHOLD = 30

CREDENTIAL_STATUS_POINTS = {
    "invalid": (40, "Credential validation returned invalid"),
    "error": (20, "Error occurred during credential validation"),
    "pending": (10, "Credential validation is still pending"),
    "valid": (0, None),
}


def determine_risk_level(score: int) -> str:
    if score >= HIGH_RISK_THRESHOLD:
        return "high"
    if score >= MEDIUM_RISK_THRESHOLD:
        return "medium"
    return "low"


def is_document_type_recognized(document_type: Optional[str]) -> bool:
    return bool(document_type) and document_type.upper() in RECOGNIZED_DOCUMENT_TYPES


def is_document_expired(expiration_date, today: Optional[date] = None) -> bool:
    if not expiration_date:
        return False
    if isinstance(expiration_date, str):
        try:
            expiration_date = date.fromisoformat(expiration_date[:10])
        except ValueError:
            return False
    if isinstance(expiration_date, datetime):
        expiration_date = expiration_date.date()
    return expiration_date < (today or datetime.utcnow().date())


def is_address_complete(address: Optional[dict]) -> bool:
    if not address:
        return False
    return all(address.get(field) for field in ("street", "city", "state", "zip_code"))


def calculate_risk_score(
    provider_info: Optional[dict],
    document_info: Optional[dict],
    credential_status: Optional[str] = None,
) -> dict:
    """
    Score a single document submission.

    Args:
        provider_info: {"address": {street, city, state, zip_code}}
        document_info: {"type": ..., "expiration_date": ...}
        credential_status: valid | invalid | pending | error, None when unknown

    Returns:
        dict with score (0-100), level (low/medium/high) and factors
    """
    score = 0
    factors = []

    try:
        if not provider_info or not document_info:
            score += 50
            factors.append("Missing provider or document information")
        else:
            document_type = document_info.get("type")
            if not is_document_type_recognized(document_type):
                score += 15
                factors.append(f"Unrecognized document type: {document_type}")

            if is_document_expired(document_info.get("expiration_date")):
                score += 25
                factors.append("Document appears to be expired")

            if not is_address_complete(provider_info.get("address")):
                score += 10
                factors.append("Provider address is incomplete")

            if credential_status in CREDENTIAL_STATUS_POINTS:
                points, factor = CREDENTIAL_STATUS_POINTS[credential_status]
                score += points
                if factor:
                    factors.append(factor)
            else:
                score += 5
                factors.append("Credential validation status not available")

        score = max(0, min(100, score))
        return {"score": score, "level": determine_risk_level(score), "factors": factors}

    except Exception as e:
        logger.error(f"❌ Risk score calculation failed: {e}")
        return {
            "score": 90,
            "level": "high",
            "factors": [f"Error occurred during risk score calculation: {e}"],
        }


def provider_info_for(user: User) -> dict:
    return {
        "address": {
            "street": user.street,
            "city": user.city,
            "state": user.state,
            "zip_code": user.zip_code,
        }
    }


def score_verification_request(
    request: VerificationRequest, credential_status: Optional[str] = None
) -> dict:
    """Score every document on the request and keep the riskiest result"""
    provider_info = provider_info_for(request.user)
    documents = request.documents or []

    if not documents:
        return calculate_risk_score(provider_info, None, credential_status)

    worst = None
    for document in documents:
        result = calculate_risk_score(
            provider_info,
            {"type": document.document_type, "expiration_date": document.expiration_date},
            credential_status,
        )
        if worst is None or result["score"] > worst["score"]:
            worst = result

    logger.info(
        f"📊 Risk score for verification {request.id}: {worst['score']} ({worst['level']})"
    )
    return worst
