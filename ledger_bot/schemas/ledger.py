"""
Pydantic schemas for users and ledgers.

The store adapter returns these instead of ORM objects, so the
async side of the bot never touches a session-bound instance.
They double as the HTTP response shapes.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Request Schemas ---

class UserCreate(BaseModel):
    """Register an identity that may own ledgers."""
    username: str = Field(min_length=1, max_length=64)
    display_name: str = Field(default="", max_length=100)

    @field_validator("username")
    @classmethod
    def strip_at_sign(cls, v: str) -> str:
        v = v.strip().lstrip("@")
        if not v:
            raise ValueError("username must not be empty")
        return v


class LedgerCreate(BaseModel):
    """Request to create a new ledger."""
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be empty")
        return v


# --- Response Schemas ---

class UserRef(BaseModel):
    """Opaque reference to a ledger owner."""
    id: int
    username: str

    model_config = ConfigDict(from_attributes=True, frozen=True)


class UserResponse(BaseModel):
    id: int
    username: str
    display_name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LedgerSummary(BaseModel):
    """A ledger as seen by the dialog and the HTTP API."""
    id: int
    uid: str
    title: str
    description: str
    created_by: int
    sheet_ref: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_complete(self) -> bool:
        return bool(self.sheet_ref)
