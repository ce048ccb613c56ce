from fastapi import APIRouter, Depends

from feedback_dashboard.api.deps import get_notification_bridge
from feedback_dashboard.core.exceptions import NotFoundError
from feedback_dashboard.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
)
from feedback_dashboard.services.notifications import NotificationBridge

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _listing(bridge: NotificationBridge) -> NotificationListResponse:
    return NotificationListResponse(
        items=list(bridge.center.items),
        unread_count=bridge.center.unread_count,
    )


@router.get("/", response_model=NotificationListResponse)
async def list_notifications(
    bridge: NotificationBridge = Depends(get_notification_bridge),
):
    """Notifications received since the session started, newest first."""
    return _listing(bridge)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(bridge: NotificationBridge = Depends(get_notification_bridge)):
    updated = bridge.center.mark_all_read()
    return MarkAllReadResponse(updated=updated, unread_count=bridge.center.unread_count)


@router.post("/{notification_id}/read", response_model=NotificationListResponse)
async def mark_read(
    notification_id: str,
    bridge: NotificationBridge = Depends(get_notification_bridge),
):
    if not bridge.center.mark_read(notification_id):
        raise NotFoundError("Notification not found")
    return _listing(bridge)


@router.delete("/{notification_id}", response_model=NotificationListResponse)
async def dismiss(
    notification_id: str,
    bridge: NotificationBridge = Depends(get_notification_bridge),
):
    if not bridge.center.dismiss(notification_id):
        raise NotFoundError("Notification not found")
    return _listing(bridge)
