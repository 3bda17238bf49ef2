"""
Notification side-channel.

Every function here is best-effort: errors are logged and turned into an
empty result (None, [], 0 or False) so that a failing notification never
fails the action that triggered it.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client

logger = logging.getLogger(__name__)


def create_notification(
    db: Client,
    user_id: str,
    title: str,
    message: str,
    category: str = "system",
    link: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    priority: str = "medium",
) -> Optional[str]:
    """Create one notification through the `send_notification` procedure.

    Returns the new notification id, or None when the call failed.
    """
    try:
        response = db.rpc(
            "send_notification",
            {
                "p_user_id": str(user_id),
                "p_title": title,
                "p_message": message,
                "p_category": category,
                "p_link": link,
                "p_metadata": metadata,
                "p_priority": priority,
            },
        ).execute()
    except Exception as e:
        logger.error(f"create_notification_failed user_id={user_id} error={e}")
        return None

    return response.data


def notify_users(
    db: Client,
    user_ids: Iterable[str],
    title: str,
    message: str,
    category: str = "system",
    link: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    priority: str = "medium",
) -> List[str]:
    """Send the same notification to each user, one call per recipient.

    A failure for one recipient does not stop the loop.
    """
    created = []
    for user_id in user_ids:
        try:
            notification_id = create_notification(
                db, user_id, title, message, category, link, metadata, priority
            )
        except Exception as e:
            logger.error(f"notify_user_failed user_id={user_id} error={e}")
            continue
        if notification_id:
            created.append(notification_id)
    return created


def create_notification_from_template(
    db: Client,
    user_id: str,
    template_name: str,
    params: Dict[str, Any],
    link: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    priority: str = "medium",
) -> Optional[str]:
    try:
        response = db.rpc(
            "send_notification_from_template",
            {
                "p_user_id": str(user_id),
                "p_template_name": template_name,
                "p_params": params,
                "p_link": link,
                "p_metadata": metadata,
                "p_priority": priority,
            },
        ).execute()
    except Exception as e:
        logger.error(
            f"create_notification_from_template_failed template={template_name} error={e}"
        )
        return None

    return response.data


def send_batch_notification(
    db: Client,
    user_ids: List[str],
    title: str,
    message: str,
    category: str = "system",
    link: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    priority: str = "medium",
) -> Optional[List[str]]:
    """Single server-side call fanning out to many users."""
    try:
        response = db.rpc(
            "send_notification_batch",
            {
                "p_user_ids": [str(uid) for uid in user_ids],
                "p_title": title,
                "p_message": message,
                "p_category": category,
                "p_link": link,
                "p_metadata": metadata,
                "p_priority": priority,
            },
        ).execute()
    except Exception as e:
        logger.error(f"send_batch_notification_failed recipients={len(user_ids)} error={e}")
        return None

    return response.data


def get_user_notifications(
    db: Client, user_id: str, limit: int = 50, only_unread: bool = False
) -> List[dict]:
    try:
        query = db.table("notifications").select("*").eq("user_id", str(user_id))
        if only_unread:
            query = query.eq("is_read", False)
        response = query.order("created_at", desc=True).limit(limit).execute()
    except Exception as e:
        logger.error(f"get_user_notifications_failed user_id={user_id} error={e}")
        return []

    return response.data or []


def get_unread_notification_count(db: Client, user_id: str) -> int:
    try:
        response = (
            db.table("notifications")
            .select("id", count="exact")
            .eq("user_id", str(user_id))
            .eq("is_read", False)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_unread_notification_count_failed user_id={user_id} error={e}")
        return 0

    if response.count is not None:
        return response.count
    return len(response.data or [])


def mark_notification_as_read(db: Client, notification_id: str, user_id: str) -> bool:
    try:
        db.table("notifications").update({"is_read": True}).eq(
            "id", str(notification_id)
        ).eq("user_id", str(user_id)).execute()
    except Exception as e:
        logger.error(f"mark_notification_as_read_failed id={notification_id} error={e}")
        return False

    return True


def mark_all_notifications_as_read(db: Client, user_id: str) -> bool:
    try:
        db.table("notifications").update({"is_read": True}).eq(
            "user_id", str(user_id)
        ).eq("is_read", False).execute()
    except Exception as e:
        logger.error(f"mark_all_notifications_as_read_failed user_id={user_id} error={e}")
        return False

    return True


def delete_notification(db: Client, notification_id: str, user_id: str) -> bool:
    try:
        db.table("notifications").delete().eq("id", str(notification_id)).eq(
            "user_id", str(user_id)
        ).execute()
    except Exception as e:
        logger.error(f"delete_notification_failed id={notification_id} error={e}")
        return False

    return True


def get_notification_preferences(db: Client, user_id: str) -> Optional[dict]:
    try:
        response = (
            db.table("notification_preferences")
            .select("*")
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_notification_preferences_failed user_id={user_id} error={e}")
        return None

    return response.data[0] if response.data else None


def update_notification_preferences(
    db: Client, user_id: str, preferences: Dict[str, Any]
) -> bool:
    # id and user_id are owned by the row, not the caller
    values = {k: v for k, v in preferences.items() if k not in ("id", "user_id")}
    values["user_id"] = str(user_id)

    try:
        db.table("notification_preferences").upsert(
            values, on_conflict="user_id"
        ).execute()
    except Exception as e:
        logger.error(f"update_notification_preferences_failed user_id={user_id} error={e}")
        return False

    return True
