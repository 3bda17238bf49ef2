from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from agrilink.core.dependencies import get_current_user_id, get_db

from . import service
from .schemas import (
    GetNotificationsResponseModel,
    UnreadNotificationCountResponseModel,
    NotificationUpdatedResponseModel,
    NotificationPreferences,
    UpdateNotificationPreferencesModel,
)


router = APIRouter()


@router.get("", response_model=GetNotificationsResponseModel, status_code=200)
def get_notifications(
    limit: int = 50,
    only_unread: bool = False,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Retrieve the authenticated user's notifications, newest first.

    **Query Parameters**
    - `limit`: Maximum number of notifications (default 50)
    - `only_unread`: Only return unread notifications

    **Returns**
    - `notifications`: List of notification objects

    Store errors are logged and produce an empty list.
    """
    return {
        "notifications": service.get_user_notifications(
            db, user_id, limit=limit, only_unread=only_unread
        )
    }


@router.get(
    "/unread-count", response_model=UnreadNotificationCountResponseModel, status_code=200
)
def get_unread_count(
    user_id: str = Depends(get_current_user_id), db: Client = Depends(get_db)
):
    """Number of unread notifications for the authenticated user."""
    return {"count": service.get_unread_notification_count(db, user_id)}


@router.post(
    "/{notification_id}/read",
    response_model=NotificationUpdatedResponseModel,
    status_code=200,
)
def mark_as_read(
    notification_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Mark one of the user's notifications as read."""
    return {
        "success": service.mark_notification_as_read(db, str(notification_id), user_id)
    }


@router.post("/read-all", response_model=NotificationUpdatedResponseModel, status_code=200)
def mark_all_as_read(
    user_id: str = Depends(get_current_user_id), db: Client = Depends(get_db)
):
    """Mark every unread notification of the user as read."""
    return {"success": service.mark_all_notifications_as_read(db, user_id)}


@router.delete(
    "/{notification_id}", response_model=NotificationUpdatedResponseModel, status_code=200
)
def delete_notification(
    notification_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    return {"success": service.delete_notification(db, str(notification_id), user_id)}


@router.get("/preferences", response_model=NotificationPreferences, status_code=200)
def get_preferences(
    user_id: str = Depends(get_current_user_id), db: Client = Depends(get_db)
):
    """
    Retrieve the user's notification preferences.

    Users without a stored preferences row get the defaults.
    """
    preferences = service.get_notification_preferences(db, user_id)
    if preferences is None:
        return NotificationPreferences(user_id=user_id)
    return preferences


@router.put("/preferences", response_model=NotificationUpdatedResponseModel, status_code=200)
def update_preferences(
    data: UpdateNotificationPreferencesModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Create or update the user's notification preferences.

    Only fields present in the request body are written.

    **Errors**
    - 500: Preferences could not be saved
    """
    saved = service.update_notification_preferences(
        db, user_id, data.model_dump(exclude_unset=True)
    )
    if not saved:
        raise HTTPException(status_code=500, detail="Failed to save preferences.")
    return {"success": True}
