"""FastAPI routes for notifications.

Thin adapters that translate HTTP requests into domain commands.
No business logic — just schema→command→response translation.
"""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from storefront.notifications.api.schemas import (
    BulkNotificationRequest,
    BulkNotificationResponse,
    ContactPointsRequest,
    MarkAllReadResponse,
    MarkReadRequest,
    NotificationIdResponse,
    NotificationListResponse,
    NotificationResponse,
    PreferencesResponse,
    SendNotificationRequest,
    SetQuietHoursRequest,
    StatusResponse,
    ToggleChannelRequest,
    TypeChannelsRequest,
    UnreadCountResponse,
)
from storefront.notifications.notification.dispatch import NotificationDispatcher, SendNotification
from storefront.notifications.notification.notification import Notification
from storefront.notifications.notification.reading import (
    MarkAllNotificationsRead,
    MarkNotificationRead,
    list_for_user,
    unread_count,
)
from storefront.notifications.notification.retry import RetryNotification
from storefront.notifications.preference.management import (
    ClearQuietHours,
    RegisterContactPoints,
    SetQuietHours,
    SetTypeChannels,
    ToggleChannel,
    preferences_for,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _notification_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        notification_id=str(n.id),
        notification_type=n.notification_type,
        channel=n.channel,
        title=n.title,
        message=n.message,
        status=n.status,
        priority=n.priority,
        data=n.data_dict,
        scheduled_for=_iso(n.scheduled_for),
        sent_at=_iso(n.sent_at),
        read_at=_iso(n.read_at),
        created_at=_iso(n.created_at),
    )


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------
@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    user_id: str,
    status: str | None = None,
    channel: str | None = None,
    limit: int = 50,
) -> NotificationListResponse:
    """A user's notifications, newest first."""
    notifications = list_for_user(user_id, status=status, channel=channel, limit=limit)
    return NotificationListResponse(notifications=[_notification_response(n) for n in notifications])


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(user_id: str) -> UnreadCountResponse:
    return UnreadCountResponse(user_id=user_id, unread=unread_count(user_id))


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(body: MarkReadRequest) -> MarkAllReadResponse:
    marked = current_domain.process(MarkAllNotificationsRead(user_id=body.user_id), asynchronous=False)
    return MarkAllReadResponse(marked=marked)


@router.put("/{notification_id}/read", response_model=StatusResponse)
async def mark_read(notification_id: str, body: MarkReadRequest) -> StatusResponse:
    command = MarkNotificationRead(notification_id=notification_id, user_id=body.user_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="read")


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------
@router.post("", status_code=201, response_model=NotificationIdResponse)
async def send_notification(body: SendNotificationRequest) -> NotificationIdResponse:
    """Notify a user over one channel, now or at ``scheduled_for``."""
    command = SendNotification(
        user_id=body.user_id,
        notification_type=body.notification_type,
        channel=body.channel,
        title=body.title,
        message=body.message,
        data=json.dumps(body.data),
        priority=body.priority,
        scheduled_for=body.scheduled_for,
    )
    notification_id = current_domain.process(command, asynchronous=False)
    return NotificationIdResponse(notification_id=notification_id)


@router.post("/bulk", response_model=BulkNotificationResponse)
async def send_bulk(body: BulkNotificationRequest) -> BulkNotificationResponse:
    summary = NotificationDispatcher().send_bulk(
        body.user_ids,
        body.notification_type,
        body.channel,
        body.title,
        body.message,
        data=body.data,
    )
    return BulkNotificationResponse(**summary)


@router.post("/{notification_id}/retry", response_model=StatusResponse)
async def retry_notification(notification_id: str) -> StatusResponse:
    """Retry a failed notification right away."""
    status = current_domain.process(RetryNotification(notification_id=notification_id), asynchronous=False)
    return StatusResponse(status=status)


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------
@router.get("/preferences/{user_id}", response_model=PreferencesResponse)
async def get_preferences(user_id: str) -> PreferencesResponse:
    """A user's notification preferences (defaults on first access)."""
    pref = preferences_for(user_id)
    return PreferencesResponse(
        preference_id=str(pref.id),
        user_id=str(pref.user_id),
        email=pref.email,
        phone=pref.phone,
        device_token=pref.device_token,
        timezone=pref.timezone,
        type_channels=json.loads(pref.type_channels) if pref.type_channels else {},
        channel_settings=json.loads(pref.channel_settings) if pref.channel_settings else {},
    )


@router.put("/preferences/{user_id}/contact", response_model=StatusResponse)
async def register_contact_points(user_id: str, body: ContactPointsRequest) -> StatusResponse:
    command = RegisterContactPoints(
        user_id=user_id,
        email=body.email,
        phone=body.phone,
        device_token=body.device_token,
        timezone=body.timezone,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/preferences/{user_id}/types", response_model=StatusResponse)
async def set_type_channels(user_id: str, body: TypeChannelsRequest) -> StatusResponse:
    """Choose which channels carry one notification type."""
    command = SetTypeChannels(
        user_id=user_id,
        notification_type=body.notification_type,
        channels=json.dumps(body.channels),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/preferences/{user_id}/channels/{channel}", response_model=StatusResponse)
async def toggle_channel(user_id: str, channel: str, body: ToggleChannelRequest) -> StatusResponse:
    command = ToggleChannel(user_id=user_id, channel=channel, enabled=body.enabled)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/preferences/{user_id}/channels/{channel}/quiet-hours", response_model=StatusResponse)
async def set_quiet_hours(user_id: str, channel: str, body: SetQuietHoursRequest) -> StatusResponse:
    """Set a do-not-disturb window for one channel."""
    command = SetQuietHours(user_id=user_id, channel=channel, start=body.start, end=body.end)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.delete("/preferences/{user_id}/channels/{channel}/quiet-hours", response_model=StatusResponse)
async def clear_quiet_hours(user_id: str, channel: str) -> StatusResponse:
    current_domain.process(ClearQuietHours(user_id=user_id, channel=channel), asynchronous=False)
    return StatusResponse()
