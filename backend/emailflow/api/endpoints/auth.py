"""Dashboard sign-in, registration and the current user's readiness."""
from datetime import datetime
from typing import Optional
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_current_active_user, get_auth_context
from emailflow.core.context import AuthContext
from emailflow.core.security import verify_password, get_password_hash, create_access_token
from emailflow.db.models.user import User
from emailflow.schemas.user import UserCreate, UserResponse, CurrentUserResponse, Token
from emailflow.services.integrations import integration_status

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = structlog.get_logger()


def _authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == email).first()
    if user and verify_password(password, user.password_hash):
        return user
    return None


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """Exchange email (as `username`) and password for a bearer token."""
    user = _authenticate(db, form_data.username, form_data.password)
    if user is None:
        logger.info("Rejected sign-in", email=form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account"
        )

    user.last_login_at = datetime.utcnow()
    db.commit()
    db.refresh(user)

    return Token(
        access_token=create_access_token({"sub": user.email, "uid": user.user_id}),
        user=UserResponse.model_validate(user)
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_in: UserCreate,
    db: Session = Depends(get_db)
):
    """Create a dashboard user."""
    user = User(
        email=user_in.email,
        password_hash=get_password_hash(user_in.password),
        full_name=user_in.full_name,
        is_active=user_in.is_active
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )
    db.refresh(user)
    logger.info("User registered", user_id=user.user_id)
    return UserResponse.model_validate(user)


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    auth: AuthContext = Depends(get_auth_context)
):
    """The signed-in user and whether each provider connection is usable.

    Expired tokens are reported, not refreshed; see /integrations/ghl/status.
    """
    return CurrentUserResponse(
        **UserResponse.model_validate(current_user).model_dump(),
        integrations=integration_status(db, auth)
    )
