"""Account registration, sign-in and profile endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth.dependencies import get_current_user
from app.auth.jwt import create_access_token
from app.auth.passwords import hash_password, verify_password
from app.auth.schemas import CurrentUser
from app.database.session import get_db
from app.dependencies.rate_limit import get_ledger
from app.models.user import User
from app.schemas.analysis import AnalysisSummaryResponse
from app.schemas.auth import (
    LoginRequest,
    MeResponse,
    RegisterRequest,
    TokenResponse,
    UserResponse,
    UserStats,
)
from app.services.core.analyses import count_user_analyses, get_user_analyses
from app.services.quota import ServerUsageLedger, StoreUnavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password"


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """Create an account and sign it in."""
    existing = db.scalar(select(User).where(User.email == data.email))
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=data.email,
        name=data.name,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user {user.id}")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """Exchange email and password for an access token."""
    user = db.scalar(select(User).where(User.email == data.email))
    if not user or not verify_password(data.password, user.password_hash):
        logger.warning("Failed sign-in attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _token_response(user)


@router.get("/me", response_model=MeResponse)
def me(
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: ServerUsageLedger = Depends(get_ledger),
) -> MeResponse:
    """Profile of the signed-in user with usage stats."""
    user = db.get(User, current.id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        record = ledger.get_usage(user.id)
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Usage tracking is temporarily unavailable")

    recent, _ = get_user_analyses(db, user.id, limit=5)
    return MeResponse(
        user=UserResponse.model_validate(user),
        stats=UserStats(
            total_analyses=count_user_analyses(db, user.id),
            current_usage=record.used_count,
            remaining_usage=record.remaining_count,
            recent_analyses=[AnalysisSummaryResponse.model_validate(a) for a in recent],
        ),
    )
