"""
Password Hashing, Token Issuing & Verification

This module is responsible for:

1. Hashing and checking user passwords.
2. Issuing short-lived bearer JWTs at register/login.
3. Verifying incoming bearer tokens and producing a `UserContext`.

Security Model
--------------
- Tokens are HS256-signed with ``JWT_SECRET`` and carry issuer, audience,
  subject (user id) and expiry claims.
- A valid token for a user that no longer exists is rejected.
"""

from __future__ import annotations

import time
from typing import Annotated, Any, Dict

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.hash import pbkdf2_sha256

from ..api.dependencies import get_storage
from ..config import settings
from ..storage import Storage, User
from .models import UserContext

TOKEN_ISSUER = "doc-chat-server"
TOKEN_AUDIENCE = "doc-chat-client"


# ---------------------------------------------------------------------
# Security Scheme
# ---------------------------------------------------------------------

security = HTTPBearer(auto_error=True)


# ---------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------

def hash_password(password: str) -> str:
    return pbkdf2_sha256.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pbkdf2_sha256.verify(password, password_hash)
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------

def create_access_token(user: User) -> str:
    """
    Generate a bearer token for ``user``.
    """
    now = int(time.time())

    payload: Dict[str, Any] = {
        "iss": TOKEN_ISSUER,
        "aud": TOKEN_AUDIENCE,
        "iat": now,
        "exp": now + settings.jwt_ttl_seconds,
        "sub": str(user.id),
        "username": user.username,
    }

    return jwt.encode(
        payload,
        settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algo,
    )


def decode_access_token(token: str) -> UserContext:
    """
    Decode and validate a bearer token.

    Raises
    ------
    HTTPException(401) for invalid, expired or malformed tokens.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algo],
            audience=TOKEN_AUDIENCE,
            issuer=TOKEN_ISSUER,
            options={"require": ["iss", "aud", "iat", "exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired.",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or malformed token.",
        )

    try:
        return UserContext(
            user_id=int(payload["sub"]),
            username=payload.get("username") or payload["sub"],
        )
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has an invalid subject.",
        )


# ---------------------------------------------------------------------
# Public Authentication Dependency
# ---------------------------------------------------------------------

async def get_current_user(
    creds: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> UserContext:
    """
    Verify the bearer token and confirm the user still exists.
    """
    user = decode_access_token(creds.credentials)

    if await storage.get_user(user.user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user.",
        )

    return user
