"""
Authentication Endpoints
Account registration, login and profile
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backoffice.database import get_db
from backoffice.dependencies import get_current_user
from backoffice.models.user import User
from backoffice.schemas.user import Token, UserCreate, UserLogin, UserResponse
from backoffice.services import auth_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(user_in: UserCreate, db: Session = Depends(get_db)):
    """Register a new applicant account (role USER)"""
    return auth_service.register_user(
        db,
        email=user_in.email,
        password=user_in.password,
        username=user_in.username,
    )


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get access token with user info"""
    user = auth_service.authenticate_user(db, credentials.email, credentials.password)
    if not user:
        logger.warning(f"[AUTH] Failed login for {credentials.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Token(
        access_token=auth_service.create_user_token(user),
        token_type="bearer",
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Get current user profile"""
    return current_user
