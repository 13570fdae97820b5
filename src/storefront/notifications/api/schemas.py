"""Pydantic API schemas for notifications and preferences."""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class SendNotificationRequest(BaseModel):
    user_id: str
    notification_type: str
    channel: str
    title: str = Field(max_length=200)
    message: str
    data: dict = Field(default_factory=dict)
    priority: str = "normal"
    scheduled_for: datetime | None = None


class BulkNotificationRequest(BaseModel):
    user_ids: list[str] = Field(min_length=1)
    notification_type: str
    channel: str
    title: str = Field(max_length=200)
    message: str
    data: dict = Field(default_factory=dict)


class MarkReadRequest(BaseModel):
    user_id: str


class ContactPointsRequest(BaseModel):
    email: str | None = None
    phone: str | None = None
    device_token: str | None = None
    timezone: str | None = None


class TypeChannelsRequest(BaseModel):
    notification_type: str
    channels: list[str]


class ToggleChannelRequest(BaseModel):
    enabled: bool


class SetQuietHoursRequest(BaseModel):
    start: str = Field(pattern=r"^\d{2}:\d{2}$")  # HH:MM, user's local time
    end: str = Field(pattern=r"^\d{2}:\d{2}$")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class NotificationIdResponse(BaseModel):
    notification_id: str


class NotificationResponse(BaseModel):
    notification_id: str
    notification_type: str
    channel: str
    title: str
    message: str
    status: str
    priority: str | None = None
    data: dict = {}
    scheduled_for: str | None = None
    sent_at: str | None = None
    read_at: str | None = None
    created_at: str | None = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]


class UnreadCountResponse(BaseModel):
    user_id: str
    unread: int


class MarkAllReadResponse(BaseModel):
    marked: int


class BulkNotificationResponse(BaseModel):
    sent: int
    failed: int
    deferred: int
    refused: int


class PreferencesResponse(BaseModel):
    preference_id: str
    user_id: str
    email: str | None = None
    phone: str | None = None
    device_token: str | None = None
    timezone: str
    type_channels: dict
    channel_settings: dict
