"""
inventory/schemas.py

Pydantic request schemas for the JSON API.
Response bodies reuse the models in inventory.models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator


def _strip(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip()
    return v


class PartialUpdate(BaseModel):
    """Base for PATCH payloads: omitted or null fields are left unchanged."""

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ========================================================================
# AUTH
# ========================================================================

class CheckUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


class LoginRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


# ========================================================================
# ITEMS
# ========================================================================

class ItemCreateRequest(BaseModel):
    """New item. quantity defaults to 1 and status to "active"."""
    name: str = Field(..., min_length=1, max_length=200)
    category_id: str
    quantity: StrictInt = Field(1, ge=0)
    condition_id: str
    location_id: Optional[str] = None
    photo_url: Optional[str] = None
    source_id: str
    donor_id: Optional[str] = None
    procurement_id: Optional[str] = None
    status_id: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


class ItemUpdateRequest(PartialUpdate):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category_id: Optional[str] = None
    quantity: Optional[StrictInt] = Field(None, ge=0)
    condition_id: Optional[str] = None
    location_id: Optional[str] = None
    photo_url: Optional[str] = None
    source_id: Optional[str] = None
    donor_id: Optional[str] = None
    procurement_id: Optional[str] = None
    status_id: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


# ========================================================================
# BORROWINGS
# ========================================================================

class BorrowingCreateRequest(BaseModel):
    """
    Quantity is range-checked by the service so the error names the rule.
    expected_return_date takes an RFC 3339 timestamp or a bare date (midnight).
    """
    item_id: str
    quantity: Optional[StrictInt] = None
    expected_return_date: datetime
    notes: Optional[str] = Field(None, max_length=1000)


# ========================================================================
# USERS
# ========================================================================

class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    role_id: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


class UserUpdateRequest(PartialUpdate):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=200)
    phone_number: Optional[str] = Field(None, max_length=50)
    avatar_url: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1)
    role_id: Optional[str] = None
    from_login: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"from_login"})


# ========================================================================
# PERMISSIONS
# ========================================================================

class PermissionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


class PermissionUpdateRequest(PartialUpdate):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class RolePermissionRequest(BaseModel):
    role_id: str
    permission_id: str


# ========================================================================
# LOOKUP TABLES
# ========================================================================

class LookupCreateRequest(BaseModel):
    """Columns a given table does not have are ignored by the service."""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


class LookupUpdateRequest(PartialUpdate):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
