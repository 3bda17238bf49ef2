import logging
from uuid import UUID

from supabase import Client

from agrilink.core.errors import store_error

logger = logging.getLogger(__name__)


def format_full_name(user: dict | None) -> str:
    """'first last' from a users row, trimmed; empty string when unknown."""
    if not user:
        return ""
    return f"{user.get('first_name') or ''} {user.get('last_name') or ''}".strip()


def get_user_display_name(db: Client, user_id: UUID | str) -> str | None:
    """Get a user's display name using their id, None when the user does not exist"""

    try:
        response = (
            db.table("users")
            .select("first_name, last_name")
            .eq("id", str(user_id))
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise store_error("Database error while looking up user.", e)

    if not response.data:
        return None

    return format_full_name(response.data[0])


def get_email_handle(db: Client, user_id: UUID | str, default: str = "User") -> str:
    """Local part of the user's email, used as a short sender name."""

    try:
        response = (
            db.table("users").select("email").eq("id", str(user_id)).limit(1).execute()
        )
    except Exception as e:
        logger.error(f"email_handle_lookup_failed user_id={user_id} error={e}")
        return default

    if not response.data or not response.data[0].get("email"):
        return default

    return response.data[0]["email"].split("@")[0] or default
