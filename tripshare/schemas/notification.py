"""
Pydantic schemas for notifications.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: int
    recipient_id: str
    actor_id: str
    actor_name: Optional[str]
    type: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="payload")
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int
