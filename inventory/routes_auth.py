"""
inventory/routes_auth.py

Session endpoints: onboarding check, login/logout (token cookie) and /api/me.

- POST /api/check-user: does the user exist, and have they set a password yet
- POST /api/login: verify password, issue token in body and httpOnly cookie
- GET  /api/logout: expire the cookie
- GET  /api/me: cookie session -> {id, name, role}
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from inventory.auth_context import (
    TOKEN_COOKIE,
    create_access_token,
    get_cookie_identity,
    get_db,
    get_settings,
    verify_password,
)
from inventory.config import Settings
from inventory.db import DBConnection, fetch_one
from inventory.errors import NotFound, Unauthorized
from inventory.models import Identity
from inventory.schemas import CheckUserRequest, LoginRequest
from inventory.users import find_credentials

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/check-user")
def check_user(req: CheckUserRequest, conn: DBConnection = Depends(get_db)) -> Dict[str, Any]:
    user = find_credentials(conn, req.name)
    if user is None:
        raise NotFound("User not found")
    return {
        "id": user["id"],
        "name": user["name"],
        "password_exists": bool(user["password_hash"]),
    }


@router.post("/login")
def login(
    req: LoginRequest,
    response: Response,
    conn: DBConnection = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Exchange name + password for a session token.

    Users who have not set a password yet cannot log in (same 401 as a
    wrong password, so the response does not reveal which case it was).
    """
    user = find_credentials(conn, req.name)
    if user is None or not verify_password(req.password, user["password_hash"]):
        logger.info("[LOGIN] Rejected login attempt")
        raise Unauthorized("Invalid username or password")

    role = user["role"] or ""
    token = create_access_token(settings, user["id"], role)
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.access_token_hours * 3600,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    logger.info("[LOGIN] Session issued: user_id=%s", user["id"])
    return {"token": token, "user_id": user["id"], "username": user["name"], "role": role}


@router.get("/logout")
def logout(response: Response, settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    response.delete_cookie(
        TOKEN_COOKIE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(
    identity: Identity = Depends(get_cookie_identity),
    conn: DBConnection = Depends(get_db),
) -> Dict[str, Any]:
    row = fetch_one(
        conn,
        """
        SELECT u.id, u.name, r.name AS role
        FROM users u
        LEFT JOIN user_roles r ON r.id = u.role_id
        WHERE u.id = :id
        """,
        {"id": identity.user_id},
    )
    if row is None:
        raise Unauthorized("User not found")
    return {"id": row["id"], "name": row["name"], "role": row["role"]}
