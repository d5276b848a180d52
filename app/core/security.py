"""
Security utilities for authentication and authorization
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import argon2
import bcrypt
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.constants import SERVICE_NAME

logger = logging.getLogger(__name__)

_argon2_hasher = argon2.PasswordHasher()

# Only used to verify legacy hashes produced by passlib's bcrypt handler
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password with argon2, falling back to bcrypt"""
    try:
        return _argon2_hasher.hash(password)
    except argon2.exceptions.HashingError as e:
        logger.warning("Argon2 hashing failed, falling back to bcrypt: %s", e)

    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def validate_password(password: str) -> str:
    """
    Validate and normalize password for hashing

    Raises:
        ValueError: If password is invalid with specific error message
    """
    if password is None:
        raise ValueError("Password is required")

    password = password.strip()
    if not password:
        raise ValueError("Password cannot be empty")
    if len(password) < 6:
        raise ValueError("Password must be at least 6 characters")
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError("Password cannot be longer than 72 bytes when encoded as UTF-8")

    return password


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    if hashed_password.startswith("$argon2"):
        try:
            return _argon2_hasher.verify(hashed_password, plain_password)
        except argon2.exceptions.VerifyMismatchError:
            return False
        except argon2.exceptions.InvalidHashError:
            logger.warning("Stored argon2 hash is malformed")
            return False

    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Not a raw bcrypt hash, let passlib identify it
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            return False


def create_access_token(data: Dict, expires_minutes: Optional[int] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()

    if expires_minutes is None:
        expires_minutes = settings.JWT_EXPIRE_MINUTES

    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire, "iss": SERVICE_NAME})

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str) -> Dict:
    """Decode and verify a JWT token"""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise ValueError("Invalid token")
