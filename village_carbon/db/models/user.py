"""
User model mirrored from the platform's account store.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4
from sqlmodel import Field, SQLModel
from village_carbon.core.config import UserRole


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserBase(SQLModel):
    """Base user model with shared fields."""
    email: str = Field(unique=True, index=True)
    name: Optional[str] = None
    role: str = Field(default=UserRole.GUEST.value, index=True)


class User(UserBase, table=True):
    """User database model."""
    __tablename__ = "users"

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
