from schoolcbt.infrastructure.db.session import SessionLocal
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
import jwt
from schoolcbt.application.auth.roles import AuthContext, Capability
from schoolcbt.infrastructure.security.jwt_service import decode_access_token
from schoolcbt.infrastructure.db.models.user_model import UserModel
from schoolcbt.infrastructure.repositories.user_repo_impl import to_auth_context
import logging
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Set auto_error=False so a missing token gets the same 401 body as a bad one
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    if not token:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        logger.warning("Rejected expired token")
        raise _unauthorized("Authentication token has expired")
    except jwt.PyJWTError as e:
        logger.warning(f"Token validation failed: {e}")
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("user_id")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    # Verify user still exists and is allowed in
    user = db.query(UserModel).filter(UserModel.id == user_id).first()
    if not user:
        raise _unauthorized("User not found")
    if user.blocked:
        logger.warning(f"Blocked user_id {user_id} presented a valid token")
        raise _unauthorized("Account has been blocked. Please contact administrator.")

    logger.debug(f"Validated token for user_id: {user_id}")
    return to_auth_context(user)


def require(capability: Capability):
    """Dependency factory: the caller's role must carry `capability`."""

    def checker(current_user: AuthContext = Depends(get_current_user)) -> AuthContext:
        if not current_user.can(capability):
            logger.warning(
                f"Access denied for user_id {current_user.user_id} "
                f"({current_user.role.value}): needs {capability.value}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{capability.value}' required",
            )
        return current_user

    return checker
