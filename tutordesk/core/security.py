from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
import jwt
from tutordesk.core.config import settings

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(plain: str) -> str:
    return pwd_ctx.hash(plain)

def create_access_token(sub: str, expires_min: int | None = None) -> str:
    """Signed token whose ``sub`` is the user's email."""
    minutes = expires_min if expires_min is not None else settings.ACCESS_TOKEN_EXPIRES_MIN
    payload = {"sub": sub, "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes)}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])

def email_from_header(authorization: str | None) -> str | None:
    """Email carried by a ``Bearer`` header, or None when absent or invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    try:
        return decode_token(authorization.split(" ", 1)[1]).get("sub")
    except jwt.PyJWTError:
        return None
