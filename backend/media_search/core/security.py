from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from media_search.core.config import settings

# bcrypt with a fixed cost factor; each extra round doubles hashing time
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its bcrypt hash (constant-time)"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password; the salt is generated per call and stored in the hash"""
    return pwd_context.hash(password)


def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a bearer token carrying `claims`, valid for ACCESS_TOKEN_EXPIRE_MINUTES by default"""
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {**claims, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """
    Verify signature and expiry and return the claims.

    Returns None for any token jose rejects: expired, tampered with,
    or signed with a different key.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def dummy_verify() -> None:
    """Spend one bcrypt verification so a missing user costs as much as a wrong password"""
    pwd_context.dummy_verify()
