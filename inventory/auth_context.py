"""
inventory/auth_context.py

Shared authentication primitives for FastAPI dependency injection.

Contains:
- hash_password / verify_password: credential hashing (salted PBKDF2)
- create_access_token / verify_token: HS256 session tokens {sub, role, exp}
- get_settings / get_db: request-scoped access to app state
- get_identity: bearer header or "token" cookie -> Identity
- get_optional_identity: same, but anonymous callers get None
- get_cookie_identity: cookie-only variant used by /api/me

This module MUST NOT import the route modules to avoid circular dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time
from typing import Generator, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from inventory.config import Settings
from inventory.db import DBConnection
from inventory.errors import Unauthorized
from inventory.models import Identity

logger = logging.getLogger(__name__)

# Bearer header is optional: the "token" cookie is accepted as a fallback
security = HTTPBearer(auto_error=False)

TOKEN_COOKIE = "token"

PBKDF2_ITERATIONS = 260_000


# ---------------------------------------------------------
# Password hashing
# ---------------------------------------------------------
def hash_password(password: str) -> str:
    """Return "pbkdf2_sha256$<iterations>$<salt>$<digest>" for a password."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a stored hash. Malformed or empty hashes never verify."""
    if not password_hash:
        return False
    try:
        algorithm, iterations, salt, expected = password_hash.split("$", 3)
        if algorithm != "pbkdf2_sha256":
            return False
        digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


# ---------------------------------------------------------
# JWT tokens
# ---------------------------------------------------------
def create_access_token(settings: Settings, user_id: str, role: str) -> str:
    """Sign a session token for a user."""
    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": int(time.time()) + settings.access_token_hours * 3600,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def verify_token(settings: Settings, token: str) -> Identity:
    """
    Verify a session token and return the caller identity.

    Raises:
        Unauthorized: If the token is expired, invalid or has no subject
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid JWT")

    user_id = payload.get("sub")
    if not user_id:
        logger.info("[AUTH] Missing sub in token payload")
        raise Unauthorized("Invalid token payload")

    return Identity(user_id=str(user_id), role=str(payload.get("role") or ""))


# ---------------------------------------------------------
# Request-scoped dependencies
# ---------------------------------------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[DBConnection, None, None]:
    """One connection per request, closed when the response is done."""
    with request.app.state.db.connection() as conn:
        yield conn


def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Identity:
    """
    Identity for protected endpoints.

    Token lookup order: "Authorization: Bearer <token>", then the "token" cookie.

    Raises:
        Unauthorized: If no token is present or it does not verify
    """
    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    if not token:
        logger.debug("[AUTH] No JWT token in header or cookie: path=%s", request.url.path)
        raise Unauthorized("No JWT token")

    identity = verify_token(settings, token)
    logger.debug("[AUTH] Authenticated: user_id=%s, role=%s", identity.user_id, identity.role)
    return identity


def get_optional_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Optional[Identity]:
    """Like get_identity, but None when no token is sent. A bad token still fails."""
    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    if not token:
        return None
    return verify_token(settings, token)


def get_cookie_identity(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Identity:
    """Cookie-only identity (browser session check)."""
    token = request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise Unauthorized("No token")
    return verify_token(settings, token)
