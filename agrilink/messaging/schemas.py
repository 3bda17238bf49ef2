from enum import Enum
from uuid import UUID
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ConversationType(str, Enum):
    direct = "direct"
    group = "group"
    announcement = "announcement"


class ParticipantRole(str, Enum):
    admin = "admin"
    member = "member"


class ContentType(str, Enum):
    text = "text"
    image = "image"
    file = "file"
    system = "system"


class Conversation(BaseModel):
    id: UUID
    title: Optional[str] = None
    type: ConversationType
    created_by: Optional[UUID] = None
    organization_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_message_content: Optional[str] = None
    last_message_time: Optional[datetime] = None
    last_sender_name: Optional[str] = None
    unread_count: int = 0
    participant_count: int = 0


class UserConversationInfo(BaseModel):
    user_id: UUID
    user_name: str
    user_avatar: Optional[str] = None
    role: ParticipantRole
    joined_at: Optional[datetime] = None


class MessageWithStatus(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: Optional[UUID] = None
    sender_name: Optional[str] = None
    sender_avatar: Optional[str] = None
    content: str
    content_type: ContentType = ContentType.text
    attachment_url: Optional[str] = None
    attachment_type: Optional[str] = None
    is_edited: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    is_read: bool = False
    is_delivered: bool = False
    status_id: Optional[UUID] = None


# Get conversations
class GetConversationsResponseModel(BaseModel):
    conversations: List[Conversation]


class UnreadCountResponseModel(BaseModel):
    unread_count: int


# Direct conversations
class CreateDirectConversationModel(BaseModel):
    other_user_id: UUID


# Group conversations
class CreateGroupConversationModel(BaseModel):
    title: str = Field(min_length=1)
    participant_ids: List[UUID] = Field(default_factory=list)
    organization_id: Optional[UUID] = None


# Announcement conversations
class CreateAnnouncementConversationModel(BaseModel):
    title: str = Field(min_length=1)
    organization_id: UUID
    participant_ids: List[UUID] = Field(default_factory=list)


class CreateConversationResponseModel(BaseModel):
    conversation_id: UUID


# Send Messages
class SendMessageModel(BaseModel):
    content: str = ""
    content_type: ContentType = ContentType.text
    attachment_url: Optional[str] = None
    attachment_type: Optional[str] = None


class SendMessageResponseModel(BaseModel):
    id: UUID


# Get messages
class GetMessagesResponseModel(BaseModel):
    messages: List[MessageWithStatus]


# Participants
class GetParticipantsResponseModel(BaseModel):
    participants: List[UserConversationInfo]


class AddParticipantModel(BaseModel):
    user_id: UUID
    role: ParticipantRole = ParticipantRole.member


# Edit message
class EditMessageModel(BaseModel):
    content: str = Field(min_length=1)


class SuccessResponseModel(BaseModel):
    success: bool
