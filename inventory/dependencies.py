"""
inventory/dependencies.py

Reusable FastAPI dependencies for permission enforcement.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends

from inventory.auth_context import get_db, get_identity
from inventory.db import DBConnection
from inventory.errors import Forbidden
from inventory.models import Identity
from inventory.permissions import Capability, has_permission

logger = logging.getLogger(__name__)


def require_permission(permission: str, message: str = "Insufficient permissions") -> Callable:
    """
    FastAPI dependency factory for permission-gated routes.

    Usage in routes:
        @router.post("", dependencies=[Depends(require_permission("manage_roles"))])
        def assign(...):
            ...

    Args:
        permission: Permission name the caller's role must hold
        message: Error message for the 403 response

    Returns:
        A dependency that returns the caller's Identity when allowed

    Raises:
        Forbidden: If the caller lacks the permission
    """
    def _check_permission(
        identity: Identity = Depends(get_identity),
        conn: DBConnection = Depends(get_db),
    ) -> Identity:
        if not has_permission(conn, identity, permission):
            logger.info("[AUTHZ] Permission denied: permission=%s, user_id=%s", permission, identity.user_id)
            raise Forbidden(message)
        return identity

    return _check_permission


def require_admin() -> Callable:
    """Shortcut for routes restricted to holders of admin_access."""
    return require_permission(Capability.ADMIN_ACCESS, message="Admin only")
