"""
Authentication Service
Handles account creation, authentication, token generation and the
USER <-> VILLAGER role moves driven by the lease lifecycle
"""
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.core.exceptions import ConflictError
from backoffice.core.security import create_access_token, get_password_hash, verify_password
from backoffice.database import transaction
from backoffice.models.user import User, UserRole

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: Optional[str]) -> Optional[User]:
    if not email:
        return None
    return db.query(User).filter(User.email == email).first()


def register_user(
    db: Session,
    email: str,
    password: str,
    username: Optional[str] = None,
    role: UserRole = UserRole.USER,
) -> User:
    """
    Create a new account

    Args:
        db: Database session
        email: Account email (unique)
        password: Plain text password (will be hashed)
        username: Display name, defaults to the email
        role: Account role (default: USER)

    Returns:
        Created user object
    """
    with transaction(db):
        if get_user_by_email(db, email) is not None:
            raise ConflictError("Email already registered", entity="User")

        user = User(
            username=username or email,
            email=email,
            hashed_password=get_password_hash(password),
            role=role,
        )
        db.add(user)

    db.refresh(user)
    logger.info(f"[AUTH] Registered account {user.id} ({user.email})")
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Authenticate user by email and password

    Returns:
        User object if authentication succeeds, None otherwise
    """
    user = get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_user_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Create access token for user; "sub" carries the user id."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    return create_access_token(
        data={"sub": str(user.id), "role": user.role.value},
        expires_delta=expires_delta,
    )


# ── Role moves (run inside the caller's transaction) ────────────────────────

def promote_to_villager(db: Session, email: str, username: Optional[str] = None) -> User:
    """
    Make the account behind `email` a VILLAGER, provisioning it with the
    default password when no account exists yet.
    """
    user = get_user_by_email(db, email)
    if user is None:
        user = User(
            username=email,
            email=email,
            hashed_password=get_password_hash(settings.DEFAULT_ACCOUNT_PASSWORD),
            role=UserRole.VILLAGER,
        )
        db.add(user)
        db.flush()
        logger.info(f"[AUTH] Provisioned VILLAGER account {user.id} for {email}")
        return user

    if user.role == UserRole.USER:
        user.role = UserRole.VILLAGER
        logger.info(f"[AUTH] Account {user.id} promoted USER -> VILLAGER")
    return user


def demote_to_user(db: Session, email: Optional[str]) -> Optional[User]:
    """Return a VILLAGER account to USER; other roles are left alone."""
    user = get_user_by_email(db, email)
    if user is not None and user.role == UserRole.VILLAGER:
        user.role = UserRole.USER
        logger.info(f"[AUTH] Account {user.id} demoted VILLAGER -> USER")
    return user
