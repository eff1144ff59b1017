"""
inventory/errors.py

Error taxonomy shared by the services and the HTTP layer.

Services raise these; main.py renders them as JSON with the matching status.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for user-visible errors."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(InventoryError):
    """Missing, expired or invalid credential."""
    status_code = 401


class Forbidden(InventoryError):
    """Valid identity, insufficient permission."""
    status_code = 403


class NotFound(InventoryError):
    """Referenced entity is absent or invisible to the caller."""
    status_code = 404


class BadRequest(InventoryError):
    """State precondition or input validation violation."""
    status_code = 400


class InternalError(InventoryError):
    """Storage or transaction failure."""
    status_code = 500
