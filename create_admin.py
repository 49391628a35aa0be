"""
Bootstrap an administrator account
Usage: python create_admin.py <email> <password> [--name NAME] [--permissions users:read,analytics:read]
"""
import argparse
import logging
import sys
from datetime import datetime

from visitingvet.constants import ADMIN_PERMISSIONS, ROLE_ADMIN, VERIFICATION_APPROVED
from visitingvet.database import Base, SessionLocal, engine
from visitingvet.models import User
from visitingvet.security_utils import check_password_strength, hash_password

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def create_admin(email: str, password: str, name: str = None, permissions: list = None) -> User:
    strength = check_password_strength(password)
    if not strength["is_valid"]:
        raise ValueError("; ".join(strength["feedback"]) or "Password is too weak")

    unknown = [p for p in permissions or [] if p not in ADMIN_PERMISSIONS]
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(unknown)}")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        email = email.strip().lower()
        if db.query(User).filter(User.email == email).first():
            raise ValueError(f"A user with email {email} already exists")

        admin = User(
            email=email,
            hashed_password=hash_password(password),
            name=name,
            role=ROLE_ADMIN,
            is_verified=True,
            verification_status=VERIFICATION_APPROVED,
            admin_permissions=permissions or None,
            created_at=datetime.utcnow(),
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a VisitingVet administrator")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--name")
    parser.add_argument("--permissions", help="Comma separated; omit for full access")
    args = parser.parse_args()

    perms = [p.strip() for p in args.permissions.split(",") if p.strip()] if args.permissions else None
    try:
        user = create_admin(args.email, args.password, args.name, perms)
    except ValueError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)
    logger.info(f"✅ Admin {user.email} created (id={user.id})")
