from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from schoolcbt.application.auth.roles import AuthContext
from schoolcbt.infrastructure.repositories.user_repo_impl import authenticate, get_user_by_id
from schoolcbt.infrastructure.security.jwt_service import create_access_token
from schoolcbt.presentation.dependencies import get_db, get_current_user
from schoolcbt.presentation.schemas.user_schema import LoginRequest, TokenResponse, UserOut
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, credentials.username, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    logger.info(f"User {user.id} ({user.role}) logged in")
    return TokenResponse(access_token=create_access_token(user.id, user.role), role=user.role)


@router.get("/me", response_model=UserOut)
def me(current_user: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_user_by_id(db, current_user.user_id)
