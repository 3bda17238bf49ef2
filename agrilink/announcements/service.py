"""
Organization announcements.

Creating an announcement notifies every active member of the organization
except its author. That fan-out is best-effort and never fails the create.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from agrilink.core.errors import store_error
from agrilink.notifications.service import notify_users
from agrilink.utils.display_name import get_user_display_name

logger = logging.getLogger(__name__)

# Fields a caller may never overwrite through update_announcement
IMMUTABLE_FIELDS = ("id", "created_by", "created_at", "organization_id", "creator_name")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first_row(data: Any) -> Optional[dict]:
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def _isoformat(value):
    return value.isoformat() if isinstance(value, datetime) else value


def create_announcement(
    db: Client,
    organization_id: str,
    creator_id: str,
    title: str,
    content: str,
    is_pinned: bool = False,
    expires_at: Optional[datetime] = None,
) -> dict:
    """Create an announcement and notify the organization's members.

    Tries the `admin_create_announcement` procedure first and falls back to
    `create_announcement` when it fails. Only a failure of the fallback
    raises.
    """
    expires_at = _isoformat(expires_at)
    announcement = None

    try:
        created = db.rpc(
            "admin_create_announcement",
            {
                "admin_id": str(creator_id),
                "org_id": str(organization_id),
                "title": title,
                "content": content,
                "is_pinned": is_pinned,
                "expires_at": expires_at,
            },
        ).execute()

        fetched = (
            db.table("organization_announcements")
            .select("*")
            .eq("id", str(created.data))
            .limit(1)
            .execute()
        )
        announcement = _first_row(fetched.data)
    except Exception as e:
        logger.info(f"admin_create_announcement_unavailable org_id={organization_id} error={e}")

    if announcement is None:
        try:
            created = db.rpc(
                "create_announcement",
                {
                    "organization_id": str(organization_id),
                    "creator_id": str(creator_id),
                    "title": title,
                    "content": content,
                    "is_pinned": is_pinned,
                    "expires_at": expires_at,
                },
            ).execute()
        except Exception as e:
            logger.error(f"create_announcement_failed org_id={organization_id} error={e}")
            raise store_error("Failed to create announcement.", e)

        announcement = _first_row(created.data)
        if announcement is None:
            raise store_error("Failed to create announcement.", ValueError("empty result"))

    logger.info(f"announcement_created id={announcement.get('id')} org_id={organization_id}")

    send_announcement_notifications(
        db, organization_id, creator_id, title, announcement.get("id")
    )
    return announcement


def send_announcement_notifications(
    db: Client,
    organization_id: str,
    creator_id: str,
    announcement_title: str,
    announcement_id: str,
) -> List[str]:
    """Notify active organization members other than the author."""
    try:
        members = (
            db.table("organization_members")
            .select("farmer_id")
            .eq("organization_id", str(organization_id))
            .eq("status", "active")
            .execute()
        )
    except Exception as e:
        logger.error(f"fetch_organization_members_failed org_id={organization_id} error={e}")
        return []

    recipients = [
        row["farmer_id"] for row in members.data or [] if row["farmer_id"] != str(creator_id)
    ]
    if not recipients:
        return []

    org_name = "your organization"
    try:
        org = (
            db.table("organizations")
            .select("name")
            .eq("id", str(organization_id))
            .limit(1)
            .execute()
        )
        if org.data and org.data[0].get("name"):
            org_name = org.data[0]["name"]
    except Exception as e:
        logger.error(f"fetch_organization_name_failed org_id={organization_id} error={e}")

    return notify_users(
        db,
        recipients,
        f"New Announcement from {org_name}",
        announcement_title,
        "system",
        f"/farmer/organization?org={organization_id}&tab=announcements",
        {
            "announcementId": announcement_id,
            "organizationId": str(organization_id),
            "type": "announcement",
        },
        "medium",
    )


def get_organization_announcements(
    db: Client, organization_id: str, include_expired: bool = False, limit: int = 100
) -> List[dict]:
    try:
        response = db.rpc(
            "get_organization_announcements",
            {"org_id": str(organization_id), "include_expired": include_expired},
        ).execute()
    except Exception as e:
        logger.error(f"get_announcements_failed org_id={organization_id} error={e}")
        return []

    return (response.data or [])[:limit]


def get_announcement_by_id(db: Client, announcement_id: str) -> Optional[dict]:
    try:
        response = (
            db.table("organization_announcements")
            .select("*")
            .eq("id", str(announcement_id))
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_announcement_failed id={announcement_id} error={e}")
        return None

    if not response.data:
        return None

    announcement = response.data[0]
    creator_name = None
    if announcement.get("created_by"):
        try:
            creator_name = get_user_display_name(db, announcement["created_by"])
        except Exception as e:
            logger.error(f"get_announcement_creator_failed id={announcement_id} error={e}")

    return {**announcement, "creator_name": creator_name or "Unknown"}


def update_announcement(
    db: Client, announcement_id: str, updates: Dict[str, Any]
) -> Optional[dict]:
    values = {
        key: _isoformat(value)
        for key, value in updates.items()
        if key not in IMMUTABLE_FIELDS
    }
    values["updated_at"] = _now()

    try:
        response = (
            db.table("organization_announcements")
            .update(values)
            .eq("id", str(announcement_id))
            .execute()
        )
    except Exception as e:
        logger.error(f"update_announcement_failed id={announcement_id} error={e}")
        return None

    return _first_row(response.data)


def toggle_announcement_pinned(db: Client, announcement_id: str, is_pinned: bool) -> bool:
    return update_announcement(db, announcement_id, {"is_pinned": is_pinned}) is not None


def delete_announcement(db: Client, announcement_id: str) -> bool:
    """Soft delete: the row stays with status=deleted."""
    return (
        update_announcement(db, announcement_id, {"status": "deleted"}) is not None
    )
