"""
Authentication router: signup, login, token refresh, logout, profile.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_user
from app.database import get_db
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    RefreshRequest,
    SignupRequest,
    TokenPair,
)
from app.schemas.common import ApiResponse, ok
from app.services import auth_service

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


@router.post("/signup", response_model=ApiResponse[LoginResponse], status_code=201, summary="Register")
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    """Creates an account with the default role and returns a token pair."""
    return ok(auth_service.signup(db, data), "Account created")


@router.post("/login", response_model=ApiResponse[LoginResponse], summary="Log in")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    return ok(auth_service.login(db, data.email, data.password), "Login successful")


@router.post("/refresh-token", response_model=ApiResponse[TokenPair], summary="Rotate the refresh token")
def refresh_token(data: RefreshRequest, db: Session = Depends(get_db)):
    """The refresh token sent is revoked and replaced by a new one."""
    return ok(auth_service.refresh(db, data.refresh_token))


@router.post("/logout", response_model=ApiResponse[None], summary="Log out")
def logout(data: RefreshRequest, db: Session = Depends(get_db)):
    auth_service.logout(db, data.refresh_token)
    return ok(message="Logged out")


@router.get("/profile", response_model=ApiResponse[ProfileResponse], summary="Current user")
def profile(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(auth_service.get_profile(db, current_user.id))
