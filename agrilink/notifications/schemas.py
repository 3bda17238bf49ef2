from enum import Enum
from uuid import UUID
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NotificationCategory(str, Enum):
    system = "system"
    message = "message"
    task = "task"
    alert = "alert"
    report = "report"
    farm = "farm"
    budget = "budget"
    other = "other"


class NotificationPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class Notification(BaseModel):
    id: UUID
    title: str
    message: str
    is_read: bool = False
    category: NotificationCategory = NotificationCategory.system
    priority: NotificationPriority = NotificationPriority.medium
    created_at: datetime
    link: Optional[str] = None
    expires_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class NotificationPreferences(BaseModel):
    id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    email_enabled: bool = True
    push_enabled: bool = True
    category_preferences: Dict[str, bool] = Field(default_factory=dict)
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None


# Get notifications
class GetNotificationsResponseModel(BaseModel):
    notifications: List[Notification]


class UnreadNotificationCountResponseModel(BaseModel):
    count: int


# Mark read / delete
class NotificationUpdatedResponseModel(BaseModel):
    success: bool


# Preferences
class UpdateNotificationPreferencesModel(BaseModel):
    email_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    category_preferences: Optional[Dict[str, bool]] = None
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
