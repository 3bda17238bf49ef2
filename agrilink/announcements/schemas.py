from enum import Enum
from uuid import UUID
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AnnouncementStatus(str, Enum):
    active = "active"
    archived = "archived"
    deleted = "deleted"


class Announcement(BaseModel):
    id: UUID
    organization_id: UUID
    title: str
    content: str
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    is_pinned: bool = False
    expires_at: Optional[datetime] = None
    creator_name: Optional[str] = None
    status: AnnouncementStatus = AnnouncementStatus.active


class CreateAnnouncementModel(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    is_pinned: bool = False
    expires_at: Optional[datetime] = None


class UpdateAnnouncementModel(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    is_pinned: Optional[bool] = None
    expires_at: Optional[datetime] = None
    status: Optional[AnnouncementStatus] = None


class GetAnnouncementsResponseModel(BaseModel):
    announcements: List[Announcement]


class DeleteAnnouncementResponseModel(BaseModel):
    announcement_deleted: bool
