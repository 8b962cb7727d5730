"""
Authentication API Routes
"""
from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy.orm import Session
from datetime import timedelta

from inventra.core.database import get_db
from inventra.core.security import create_access_token, get_current_user
from inventra.core.config import settings
from inventra.schemas import AuthResponse, LoginRequest, MessageResponse, RegisterRequest, UserResponse
from inventra.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _issue_token(user, response: Response) -> str:
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": str(user.id)},
        expires_delta=access_token_expires
    )
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        max_age=int(access_token_expires.total_seconds()),
        samesite=settings.SESSION_COOKIE_SAMESITE,
        secure=settings.SESSION_COOKIE_SECURE or settings.is_production
    )
    return access_token


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    register_data: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """Create an account and log it in"""
    user = UserService(db).create(register_data)
    db.commit()
    access_token = _issue_token(user, response)
    return {"access_token": access_token, "token_type": "bearer", "user": user}


@router.post("/login", response_model=AuthResponse)
async def login(
    login_data: LoginRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """Login with email or phone number"""
    user = UserService(db).authenticate(login_data.email_or_phone, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )
    db.commit()

    access_token = _issue_token(user, response)
    return {"access_token": access_token, "token_type": "bearer", "user": user}


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    current_user = Depends(get_current_user)
):
    """Logout and clear token"""
    response.delete_cookie(key="access_token")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user = Depends(get_current_user)
):
    return current_user
