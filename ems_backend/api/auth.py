from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from ..db import get_db
from ..models.user import User, UserRole
from ..schemas.auth import UserLogin, Token, TokenRefresh, UserResponse
from ..schemas.common import Envelope
from ..core.security import verify_password, create_access_token, create_refresh_token, verify_token

router = APIRouter()
security = HTTPBearer()


class TokenEnvelope(Envelope, Token):
    pass


class MeEnvelope(Envelope):
    user: UserResponse


def _user_from_token(db: Session, token: str, token_type: str) -> User:
    payload = verify_token(token, token_type)
    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials"
        )

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    return user


def _issue_tokens(user: User) -> TokenEnvelope:
    return TokenEnvelope(
        access_token=create_access_token(data={"sub": str(user.id), "role": user.role.value}),
        refresh_token=create_refresh_token(data={"sub": str(user.id)}),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    return _user_from_token(db, credentials.credentials, "access")


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Require admin role"""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation requires admin role"
        )
    return current_user


@router.post("/login", response_model=TokenEnvelope)
def login(user_data: UserLogin, db: Session = Depends(get_db)):
    """Login and get access/refresh tokens"""
    user = db.query(User).filter(User.email == user_data.email).first()

    if not user or not verify_password(user_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenEnvelope)
def refresh_token(token_data: TokenRefresh, db: Session = Depends(get_db)):
    """Refresh access token using refresh token"""
    user = _user_from_token(db, token_data.refresh_token, "refresh")
    return _issue_tokens(user)


@router.get("/me", response_model=MeEnvelope)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return MeEnvelope(user=UserResponse.model_validate(current_user))
