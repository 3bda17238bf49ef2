from uuid import UUID
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CommentAuthor(BaseModel):
    id: UUID
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class ReportComment(BaseModel):
    id: UUID
    report_id: UUID
    user_id: UUID
    content: str
    parent_comment_id: Optional[UUID] = None
    is_internal: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    user: Optional[CommentAuthor] = None


class CreateCommentModel(BaseModel):
    content: str = Field(min_length=1)
    parent_comment_id: Optional[UUID] = None
    is_internal: bool = False


class UpdateCommentModel(BaseModel):
    content: str = Field(min_length=1)


class GetCommentsResponseModel(BaseModel):
    comments: List[ReportComment]


class DeleteCommentResponseModel(BaseModel):
    comment_deleted: bool
