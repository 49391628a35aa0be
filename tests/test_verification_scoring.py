from datetime import date, timedelta

from visitingvet.services.verification_scoring_service import (
    calculate_risk_score,
    determine_risk_level,
    is_document_expired,
)

FULL_ADDRESS = {"address": {"street": "1 Main St", "city": "Austin", "state": "TX", "zip_code": "78701"}}


def test_clean_submission_is_low_risk():
    future = (date.today() + timedelta(days=365)).isoformat()
    result = calculate_risk_score(FULL_ADDRESS, {"type": "VETERINARY_LICENSE", "expiration_date": future}, "valid")
    assert result == {"score": 0, "level": "low", "factors": []}


def test_missing_information_scores_fifty():
    result = calculate_risk_score(None, {"type": "VETERINARY_LICENSE"}, "valid")
    assert result["score"] == 50
    assert result["level"] == "medium"


def test_factors_accumulate_and_reach_high():
    expired = (date.today() - timedelta(days=1)).isoformat()
    result = calculate_risk_score({"address": {"city": "Austin"}}, {"type": "PHOTO", "expiration_date": expired}, "invalid")
    # 15 unknown type + 25 expired + 10 address + 40 invalid
    assert result["score"] == 90
    assert result["level"] == "high"
    assert len(result["factors"]) == 4


def test_unknown_credential_status_adds_five():
    result = calculate_risk_score(FULL_ADDRESS, {"type": "dea_registration"}, None)
    assert result["score"] == 5
    assert "Credential validation status not available" in result["factors"]


def test_risk_level_thresholds():
    assert determine_risk_level(29) == "low"
    assert determine_risk_level(30) == "medium"
    assert determine_risk_level(59) == "medium"
    assert determine_risk_level(60) == "high"


def test_expiration_parsing():
    today = date(2030, 1, 10)
    assert is_document_expired("2030-01-09", today)
    assert not is_document_expired("2030-01-10", today)
    assert not is_document_expired("not-a-date", today)
    assert not is_document_expired(None, today)
