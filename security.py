import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from config import settings
from errors import AuthenticationError, AuthorizationError
from repositories import users

logger = logging.getLogger(__name__)

# =====================
# Auth / Security Setup
# =====================
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = 7
ADMIN_ROLE = "admin"

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__default_rounds=settings.password_hash_rounds,
)
security = HTTPBearer(auto_error=False)

INVALID_CREDENTIALS = "Invalid email or password"

# hashed once at import, checked against for unknown emails
_DUMMY_HASH = pwd_context.hash("not-a-real-password")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def create_access_token(user_id: str, issued_at: Optional[datetime] = None) -> str:
    issued = issued_at or datetime.now(timezone.utc)
    expire = issued + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode = {"sub": str(user_id), "iat": issued, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the user id carried by a token, or raise AuthenticationError."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except JWTError:
        raise AuthenticationError("Invalid token")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")
    return user_id


def authenticate(email: str, password: str) -> dict:
    """Look up the user and check the password; unknown email and bad password fail alike."""
    user = users.find_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        logger.info("Rejected login attempt")
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not verify_password(password, user.get("passwordHash", "")):
        logger.info("Rejected login attempt")
        raise AuthenticationError(INVALID_CREDENTIALS)
    return user


def public_user(user_doc: dict) -> dict:
    if not user_doc:
        return {}
    return {
        "id": str(user_doc.get("_id")),
        "email": user_doc.get("email"),
        "role": user_doc.get("role", ADMIN_ROLE),
    }


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> dict:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Access token required")
    user_id = decode_access_token(credentials.credentials)
    # re-read so a deleted user loses access immediately
    user = users.find_by_id(user_id)
    if user is None:
        raise AuthenticationError("Invalid token")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != ADMIN_ROLE:
        raise AuthorizationError("Admin access required")
    return user
