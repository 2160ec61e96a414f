from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
import logging

from backoffice.core.security import decode_access_token
from backoffice.database import get_db
from backoffice.models.user import User, UserRole

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _user_from_token(token: str, db: Session) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if not payload:
        raise credentials_exception

    # User id is stored in the "sub" field
    subject = payload.get("sub")
    if subject is None:
        logger.warning("Token missing 'sub' field")
        raise credentials_exception

    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        logger.warning(f"Token 'sub' is not a user id: {subject!r}")
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None:
        logger.warning(f"User not found in database: {user_id}")
        raise credentials_exception

    return user


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT token.
    Returns 401 if token is invalid or user not found.
    """
    return _user_from_token(token, db)


def get_current_user_optional(
    token: str = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db),
):
    """Current user when a bearer token is present, otherwise None."""
    if not token:
        return None
    return _user_from_token(token, db)


def require_role(*roles: UserRole):
    def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user
    return role_checker


require_admin = require_role(UserRole.ADMIN)
