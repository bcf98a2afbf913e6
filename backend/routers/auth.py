"""
Authentication router.
Handles user registration, login, and token verification.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import bcrypt
from jose import JWTError, jwt

from config import get_settings
from dependencies import get_user_store
from models.user import UserCreate, UserLogin, UserResponse, TokenResponse, User
from store.user_store import UserStore
from utils.errors import AuthenticationError, ValidationError
from utils.validators import validate_password

logger = logging.getLogger(__name__)
router = APIRouter()

# ============================================================
# Password Hashing
# ============================================================
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    # Stored as a UTF-8 string like: "$2b$12$..."
    return hashed.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# ============================================================
# JWT Token Management
# ============================================================
def create_access_token(user_id: str) -> str:
    """Create a JWT access token for a user."""
    settings = get_settings()

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "exp": now + timedelta(hours=settings.jwt_expiration_hours),
        "iat": now,
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _bare_token(credential: Optional[str]) -> str:
    token = (credential or "").strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return token


async def resolve_credential(credential: Optional[str], users: UserStore) -> User:
    """
    Resolve a bearer credential to its user.

    Accepts either "Bearer <token>" or the bare token, so the same check
    serves the Authorization header and the stream's query parameter.

    Raises:
        AuthenticationError: Missing, invalid, or expired token, or unknown user.
    """
    token = _bare_token(credential)
    if not token:
        raise AuthenticationError("Authentication required")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")

    user = await users.get_by_id(user_id)
    if not user:
        raise AuthenticationError("User not found")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    users: UserStore = Depends(get_user_store),
) -> dict:
    """
    Dependency to get current authenticated user from JWT token.
    Raises AuthenticationError if token is missing or invalid.
    """
    user = await resolve_credential(credentials.credentials if credentials else None, users)
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name
    }


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        user=user.public(),
    )


# ============================================================
# Endpoints
# ============================================================
@router.post("/register", response_model=TokenResponse)
async def register(
    user_data: UserCreate,
    users: UserStore = Depends(get_user_store),
) -> TokenResponse:
    """Register a new user account."""
    ok, error = validate_password(user_data.password)
    if not ok:
        raise ValidationError(error)

    if await users.get_by_email(user_data.email):
        raise ValidationError("Email already registered")

    user = await users.create_user(
        email=user_data.email,
        name=user_data.name,
        password_hash=hash_password(user_data.password),
    )
    logger.info(f"Registered user {user.id}")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    users: UserStore = Depends(get_user_store),
) -> TokenResponse:
    """Login with email and password."""
    user = await users.get_by_email(credentials.email)

    if not user or not verify_password(credentials.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: dict = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
) -> UserResponse:
    """Get current authenticated user's profile."""
    user = await users.get_by_id(current_user["id"])
    if not user:
        raise AuthenticationError("User not found")

    return user.public()
