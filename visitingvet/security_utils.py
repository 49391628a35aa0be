"""
Credential primitives: bcrypt passwords, JWT sessions, signed reset links and
encrypted MFA backup codes. Everything is keyed off SECRET_KEY.
"""

import base64
import hashlib
import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from .config import SECRET_KEY

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 8

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# (pattern, hint shown when the password lacks it)
CHARACTER_CLASSES = (
    (re.compile(r"[a-z]"), "Add lowercase letters"),
    (re.compile(r"[A-Z]"), "Add uppercase letters"),
    (re.compile(r"\d"), "Add numbers"),
    (re.compile(r'[!@#$%^&*(),.?":{}|<>_\-]'), "Add special characters"),
)
COMMON_PASSWORDS = frozenset({"password", "123456", "qwerty", "admin", "letmein", "password123", "veterinary"})
STRENGTH_LABELS = ("weak", "weak", "fair", "good", "strong")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error(f"Unreadable password hash: {e}")
        return False


def check_password_strength(password: str) -> dict[str, Any]:
    """Score a password 0-4.

    Length earns 1 point (2 from 12 characters), each character class one more.
    Valid passwords have at least MIN_PASSWORD_LENGTH characters and score 3+.
    """
    feedback = []
    if len(password) < MIN_PASSWORD_LENGTH:
        score = 0
        feedback.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    else:
        score = 2 if len(password) >= 12 else 1

    for pattern, hint in CHARACTER_CLASSES:
        if pattern.search(password):
            score += 1
        else:
            feedback.append(hint)

    if password.lower() in COMMON_PASSWORDS:
        score = 0
        feedback.append("This is a commonly used password - choose something unique")

    score = min(score, 4)
    return {
        "score": score,
        "strength": STRENGTH_LABELS[score],
        "feedback": feedback,
        "is_valid": len(password) >= MIN_PASSWORD_LENGTH and score >= 3,
    }


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(SECRET_KEY)


def generate_timed_token(data: dict[str, Any], salt: str = "security-token") -> str:
    """Signed, timestamped token for emailed links (password reset)"""
    return _serializer().dumps(data, salt=salt)


def verify_timed_token(token: str, max_age: int = 3600, salt: str = "security-token") -> Optional[dict[str, Any]]:
    try:
        return _serializer().loads(token, salt=salt, max_age=max_age)
    except SignatureExpired:
        logger.warning("Timed token expired")
    except BadSignature:
        logger.warning("Timed token has a bad signature")
    return None


def create_jwt_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Encode `data` (sub, role, type) with exp/iat; defaults to a 15 minute lifetime"""
    issued = datetime.utcnow()
    claims = {**data, "iat": issued, "exp": issued + (expires_delta or timedelta(minutes=15))}
    return jose_jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def verify_jwt_token(token: str, expected_type: Optional[str] = None) -> Optional[dict[str, Any]]:
    """Decoded claims, or None when the token is invalid, expired or of another type (access/refresh)"""
    try:
        payload = jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT rejected: {e}")
        return None

    if expected_type and payload.get("type") != expected_type:
        logger.warning(f"JWT of type {payload.get('type')!r} used where {expected_type!r} is required")
        return None
    return payload


def get_fernet_key() -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())


cipher = Fernet(get_fernet_key())


def generate_backup_codes(count: int = 10) -> list[str]:
    return [secrets.token_hex(4).upper() for _ in range(count)]


def encrypt_backup_codes(codes: list[str]) -> list[str]:
    return [cipher.encrypt(code.encode()).decode() for code in codes]


def decrypt_backup_codes(encrypted_codes: Optional[list[str]]) -> list[str]:
    codes = []
    for token in encrypted_codes or []:
        try:
            codes.append(cipher.decrypt(token.encode()).decode())
        except InvalidToken:
            logger.warning("⚠️ Skipping undecryptable backup code")
    return codes
