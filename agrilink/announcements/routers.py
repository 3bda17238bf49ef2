from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from agrilink.core.dependencies import get_current_user_id, get_db
from agrilink.core.errors import MessagingError, to_http

from . import service
from .schemas import (
    Announcement,
    CreateAnnouncementModel,
    UpdateAnnouncementModel,
    GetAnnouncementsResponseModel,
    DeleteAnnouncementResponseModel,
)


router = APIRouter()


@router.post(
    "/organizations/{organization_id}",
    response_model=Announcement,
    status_code=201,
)
def create_announcement(
    organization_id: UUID,
    data: CreateAnnouncementModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Publish an announcement to an organization.

    Active members of the organization (except the author) receive a
    notification. Notification failures do not fail the request.

    **Errors**
    - 500: The announcement could not be created
    """
    try:
        return service.create_announcement(
            db,
            str(organization_id),
            user_id,
            data.title,
            data.content,
            data.is_pinned,
            data.expires_at,
        )
    except MessagingError as e:
        raise to_http(e)


@router.get(
    "/organizations/{organization_id}",
    response_model=GetAnnouncementsResponseModel,
    status_code=200,
)
def get_announcements(
    organization_id: UUID,
    include_expired: bool = False,
    limit: int = 100,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Announcements of an organization; expired ones only when asked for."""
    return {
        "announcements": service.get_organization_announcements(
            db, str(organization_id), include_expired, limit
        )
    }


def _own_announcement(db: Client, announcement_id: UUID, user_id: str) -> dict:
    announcement = service.get_announcement_by_id(db, str(announcement_id))
    if announcement is None:
        raise HTTPException(status_code=404, detail="Announcement not found")
    if str(announcement.get("created_by")) != user_id:
        raise HTTPException(
            status_code=403, detail="Only the author can change this announcement."
        )
    return announcement


@router.get("/{announcement_id}", response_model=Announcement, status_code=200)
def get_announcement(
    announcement_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    announcement = service.get_announcement_by_id(db, str(announcement_id))
    if announcement is None:
        raise HTTPException(status_code=404, detail="Announcement not found")
    return announcement


@router.patch("/{announcement_id}", response_model=Announcement, status_code=200)
def update_announcement(
    announcement_id: UUID,
    data: UpdateAnnouncementModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Update title, content, pin state, expiry or status of your announcement.

    **Errors**
    - 403: Caller is not the author
    - 404: Announcement not found
    - 500: Update failed
    """
    _own_announcement(db, announcement_id, user_id)

    updated = service.update_announcement(
        db, str(announcement_id), data.model_dump(exclude_unset=True, mode="json")
    )
    if updated is None:
        raise HTTPException(status_code=500, detail="Failed to update announcement.")
    return updated


@router.delete(
    "/{announcement_id}", response_model=DeleteAnnouncementResponseModel, status_code=200
)
def delete_announcement(
    announcement_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Soft delete one of your announcements."""
    _own_announcement(db, announcement_id, user_id)
    return {"announcement_deleted": service.delete_announcement(db, str(announcement_id))}
