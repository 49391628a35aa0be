"""
Provider credential validation against an external license lookup service
"""

import logging
from typing import Optional

import httpx

from ..config import CREDENTIAL_VALIDATION_API_KEY, CREDENTIAL_VALIDATION_URL

logger = logging.getLogger(__name__)

VALID_STATUSES = ("valid", "invalid", "pending", "error")


async def validate_credentials(
    license_number: Optional[str], state: Optional[str], credential_type: str = "veterinarian"
) -> dict:
    """
    Validate a license number with the configured lookup service.

    Returns:
        dict with status (valid | invalid | pending | error), message and details
    """
    if not license_number or not state:
        logger.warning("⚠️ Credential validation attempted without license number or state")
        return {
            "status": "error",
            "message": "License number and state are required for validation",
            "details": None,
        }

    if not CREDENTIAL_VALIDATION_URL:
        logger.info(f"🔍 No credential lookup configured, license {license_number} ({state}) left pending")
        return {
            "status": "pending",
            "message": "Credential lookup service not configured, manual review required",
            "details": None,
        }

    headers = {}
    if CREDENTIAL_VALIDATION_API_KEY:
        headers["Authorization"] = f"Bearer {CREDENTIAL_VALIDATION_API_KEY}"

    try:
        logger.info(f"🔍 Validating {credential_type} license {license_number} in {state}")
        async with httpx.AsyncClient() as client:
            response = await client.get(
                CREDENTIAL_VALIDATION_URL,
                params={
                    "license_number": license_number,
                    "state": state,
                    "credential_type": credential_type,
                },
                headers=headers,
                timeout=10.0,
            )
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"❌ Credential lookup failed for {license_number} ({state}): {e}")
        return {"status": "error", "message": f"Credential lookup failed: {e}", "details": None}

    status = str(data.get("status", "")).lower()
    if status not in VALID_STATUSES:
        status = "pending"
    logger.info(f"✅ Credential lookup for {license_number} ({state}): {status}")
    return {"status": status, "message": data.get("message"), "details": data}
