"""Notification schemas."""

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from medix.schemas.common import UTCDateTime


class NotificationType(str, Enum):
    """Notification type enumeration."""

    APPOINTMENT_CONFIRMATION = "appointment_confirmation"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    APPOINTMENT_STATUS = "appointment_status"
    SCHEDULE_UPDATE = "schedule_update"
    OTHER = "other"


class PushTokenRegister(BaseModel):
    """Schema for registering FCM token."""

    fcm_token: str = Field(..., min_length=1, description="Firebase Cloud Messaging token")
    platform: str = Field(
        ...,
        description="Platform type",
        pattern="^(android|ios|web)$",
    )


class PushTokenResponse(BaseModel):
    """Schema for push token response."""

    id: UUID
    user_id: UUID
    fcm_token: str
    platform: str
    is_active: bool
    last_used_at: UTCDateTime | None = None
    created_at: UTCDateTime

    model_config = {"from_attributes": True}


class NotificationHistoryItem(BaseModel):
    """Schema for notification history item."""

    id: UUID
    title: str
    body: str
    notification_type: str
    priority: str
    status: str
    data: dict[str, Any] | None = None
    created_at: UTCDateTime
    sent_at: UTCDateTime | None = None
    read_at: UTCDateTime | None = None

    model_config = {"from_attributes": True}


class NotificationHistoryResponse(BaseModel):
    """Schema for notification history response."""

    notifications: list[NotificationHistoryItem]
    total: int
    page: int
    page_size: int
