"""Authentication service"""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..config import settings

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_SUBJECT = "household"


@lru_cache(maxsize=4)
def _hash_for(password: str) -> str:
    return pwd_context.hash(password)


class AuthService:
    """Single shared password guarding the whole app"""

    @staticmethod
    def verify_password(plain_password: str) -> bool:
        """Verify a login attempt against the configured password"""
        configured = settings.APP_PASSWORD
        if not configured or not plain_password:
            return False
        return pwd_context.verify(plain_password, _hash_for(configured))

    @staticmethod
    def create_access_token(expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT session token"""
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        to_encode = {"sub": SESSION_SUBJECT, "exp": expire}
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def verify_token(token: Optional[str]) -> bool:
        """Whether the token is a valid, unexpired session token"""
        if not token:
            return False
        try:
            payload = jwt.decode(
                token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
            )
        except JWTError:
            return False
        return payload.get("sub") == SESSION_SUBJECT

    @staticmethod
    def cookie_options() -> dict:
        """Cookie flags: Secure + SameSite=None in production, Lax locally"""
        production = settings.is_production
        return {
            "httponly": True,
            "samesite": "none" if production else "lax",
            "secure": production,
            "path": "/",
        }
