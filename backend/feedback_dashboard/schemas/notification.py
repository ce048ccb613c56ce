from pydantic import BaseModel

from feedback_dashboard.services.notifications import Notification


class NotificationListResponse(BaseModel):
    items: list[Notification]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int
    unread_count: int
