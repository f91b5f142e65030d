"""
Member notifications written alongside ledger activity.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
from sqlmodel import Field, SQLModel
from village_carbon.core.config import NotificationType
from village_carbon.db.models.user import utc_now


class Notification(SQLModel, table=True):
    """Notification database model."""
    __tablename__ = "notifications"

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    title: str
    message: str
    type: str = Field(default=NotificationType.INFO.value)
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
