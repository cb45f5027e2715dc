"""
Security Utilities

Password hashing with Argon2id and JWT token management for organization admins.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from passlib.context import CryptContext
from pydantic import BaseModel
from structlog import get_logger

from ..config import get_config
from ..errors import TokenExpiredError, TokenInvalidError, TokenMissingError

config = get_config()
logger = get_logger()

# Password hashing context with Argon2id, bcrypt accepted for legacy hashes
pwd_context = CryptContext(
    schemes=["argon2", "bcrypt"],
    deprecated="auto",
    argon2__memory_cost=config.password_hash_memory_cost,
    argon2__time_cost=config.password_hash_time_cost,
    argon2__parallelism=config.password_hash_parallelism,
)


class AdminClaims(BaseModel):
    """Claims carried by an admin bearer token."""

    admin_id: str
    organization_name: str


def get_password_hash(password: str) -> str:
    """
    Hash a password using Argon2id.

    Args:
        password: Plain text password

    Returns:
        Hashed password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Stored password hash

    Returns:
        True if password matches, False otherwise
    """
    try:
        verified, needs_rehash = pwd_context.verify_and_update(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error("password_verification_error", error=str(e))
        return False

    if verified and needs_rehash:
        # Correct password stored with a deprecated scheme or cost
        logger.info("password_needs_rehash")

    return verified


def dummy_verify() -> None:
    """Spend the same time as a real verification when no hash exists."""
    pwd_context.dummy_verify()


def create_access_token(
    data: dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data to encode in the token
        expires_delta: Token expiration time (defaults to config value)

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=config.jwt_expiry_hours)

    to_encode.update({"exp": expire})

    return jwt.encode(
        to_encode,
        config.jwt_secret_key,
        algorithm=config.jwt_algorithm,
    )


def create_admin_token(admin_id: str, organization_name: str) -> str:
    """Issue a bearer token bound to one admin and organization."""
    return create_access_token({"admin_id": admin_id, "organization_name": organization_name})


def verify_access_token(token: Optional[str]) -> AdminClaims:
    """
    Decode and validate an admin access token.

    Args:
        token: Raw bearer token

    Returns:
        Verified admin claims

    Raises:
        TokenMissingError: If no token was supplied
        TokenExpiredError: If the token is past its expiry
        TokenInvalidError: If the token is malformed or lacks claims
    """
    if not token:
        raise TokenMissingError()

    try:
        payload = jwt.decode(
            token,
            config.jwt_secret_key,
            algorithms=[config.jwt_algorithm],
        )
    except ExpiredSignatureError:
        logger.info("jwt_expired")
        raise TokenExpiredError()
    except JWTError as e:
        logger.warning("jwt_decode_error", error=str(e))
        raise TokenInvalidError()

    admin_id = payload.get("admin_id")
    organization_name = payload.get("organization_name")
    if not admin_id or not organization_name:
        logger.warning("invalid_token_payload", admin_id=admin_id, organization_name=organization_name)
        raise TokenInvalidError()

    return AdminClaims(admin_id=admin_id, organization_name=organization_name)
