from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from agrilink.core.dependencies import get_current_user_id, get_db
from agrilink.core.errors import MessagingError, to_http

from . import comments
from .schemas import (
    ReportComment,
    CreateCommentModel,
    UpdateCommentModel,
    GetCommentsResponseModel,
    DeleteCommentResponseModel,
)


router = APIRouter()


@router.get(
    "/{report_id}/comments", response_model=GetCommentsResponseModel, status_code=200
)
def get_comments(
    report_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Retrieve the comments of a field report, oldest first.

    Each comment carries its author's id and full name.
    """
    try:
        return {"comments": comments.get_report_comments(db, str(report_id))}
    except MessagingError as e:
        raise to_http(e)


@router.post("/{report_id}/comments", response_model=ReportComment, status_code=201)
def create_comment(
    report_id: UUID,
    data: CreateCommentModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    if not data.content.strip():
        raise HTTPException(status_code=400, detail="Comment cannot be empty.")

    try:
        return comments.create_comment(
            db,
            str(report_id),
            user_id,
            data.content.strip(),
            str(data.parent_comment_id) if data.parent_comment_id else None,
            data.is_internal,
        )
    except MessagingError as e:
        raise to_http(e)


def _ensure_author(db: Client, comment_id: UUID, user_id: str):
    comment = comments.get_comment(db, str(comment_id))
    if str(comment.get("user_id")) != user_id:
        raise HTTPException(status_code=403, detail="You can only change your own comments.")


@router.patch("/comments/{comment_id}", response_model=ReportComment, status_code=200)
def update_comment(
    comment_id: UUID,
    data: UpdateCommentModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Edit one of your comments.

    **Errors**
    - 403: Comment belongs to someone else
    - 404: Comment not found
    """
    if not data.content.strip():
        raise HTTPException(status_code=400, detail="Comment cannot be empty.")

    try:
        _ensure_author(db, comment_id, user_id)
        return comments.update_comment(db, str(comment_id), data.content.strip())
    except MessagingError as e:
        raise to_http(e)


@router.delete(
    "/comments/{comment_id}", response_model=DeleteCommentResponseModel, status_code=200
)
def delete_comment(
    comment_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    try:
        _ensure_author(db, comment_id, user_id)
        return {"comment_deleted": comments.delete_comment(db, str(comment_id))}
    except MessagingError as e:
        raise to_http(e)
