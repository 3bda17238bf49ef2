"""
Messaging service.

Stateless functions mapping messaging intents onto the Supabase tables and
views (`conversations`, `conversation_participants`, `messages`,
`message_status`, `conversation_previews`, `unread_message_counts`).
Every function takes the Supabase client as its first argument.

Writes on conversations, messages and core participant rows are hard
failures and raise. Notification fan-out and display-name enrichment are
soft: they are logged and skipped.

Known gaps, kept on purpose to match the store's contract:
- create_direct_conversation is check-then-act; two concurrent calls for
  the same pair can both create a conversation.
- mark_conversation_as_read performs two independent writes.
- group and announcement creation do not roll back the conversation row
  when the participant insert fails.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from supabase import Client

from agrilink.core.errors import (
    NotFoundError,
    PermissionDenied,
    ValidationError,
    store_error,
)
from agrilink.notifications.service import create_notification
from agrilink.utils.display_name import (
    format_full_name,
    get_email_handle,
    get_user_display_name,
)

from .schemas import ContentType, ConversationType, ParticipantRole

logger = logging.getLogger(__name__)

PREVIEW_MAX_LENGTH = 50
MESSAGING_LINK = "/farmer/messaging"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_message_preview(content: Optional[str], content_type: str = "text") -> str:
    """Short notification text for a message.

    Text longer than 50 characters is cut to 47 plus an ellipsis. Images and
    files get a fixed description instead of their content.
    """
    if content_type == ContentType.image.value:
        return "Sent you an image"
    if content_type != ContentType.text.value:
        return "Sent you a file"

    content = content or ""
    if len(content) > PREVIEW_MAX_LENGTH:
        return f"{content[:PREVIEW_MAX_LENGTH - 3]}..."
    return content


def unique_participant_ids(creator_id: str, participant_ids: Iterable[str]) -> List[str]:
    """Creator first, then the remaining ids in input order without repeats."""
    seen = []
    for user_id in [creator_id, *participant_ids]:
        user_id = str(user_id)
        if user_id not in seen:
            seen.append(user_id)
    return seen


def _lookup_names(db: Client, user_ids: Iterable[str]) -> dict:
    """Map user id -> display name. Failures leave the map empty."""
    ids = sorted({str(uid) for uid in user_ids if uid})
    if not ids:
        return {}

    try:
        users = (
            db.table("users")
            .select("id, first_name, last_name")
            .in_("id", ids)
            .execute()
        )
    except Exception as e:
        logger.error(f"user_name_lookup_failed count={len(ids)} error={e}")
        return {}

    return {row["id"]: format_full_name(row) for row in users.data or []}


def _conversation_from_preview(
    preview: dict, unread_count: int = 0, full: Optional[dict] = None
) -> dict:
    full = full or {}
    return {
        "id": preview["conversation_id"],
        "title": preview.get("title"),
        "type": preview.get("type"),
        "created_by": full.get("created_by"),
        "organization_id": full.get("organization_id"),
        "created_at": full.get("created_at"),
        "updated_at": full.get("updated_at") or preview.get("last_message_time"),
        "last_message_content": preview.get("last_message_content"),
        "last_message_time": preview.get("last_message_time"),
        "last_sender_name": preview.get("last_sender_name"),
        "unread_count": unread_count or 0,
        "participant_count": preview.get("participant_count") or 0,
    }


# Queries


def get_user_conversations(db: Client, user_id: str) -> List[dict]:
    """All active conversations of a user, most recent activity first.

    Conversations without messages are listed last.
    """
    try:
        participations = (
            db.table("conversation_participants")
            .select("conversation_id")
            .eq("user_id", str(user_id))
            .eq("is_active", True)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_user_conversations_failed user_id={user_id} error={e}")
        raise store_error("Failed to fetch conversations.", e)

    conversation_ids = [row["conversation_id"] for row in participations.data or []]
    if not conversation_ids:
        return []

    try:
        previews = (
            db.table("conversation_previews")
            .select("*")
            .in_("conversation_id", conversation_ids)
            .order("last_message_time", desc=True)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_conversation_previews_failed user_id={user_id} error={e}")
        raise store_error("Failed to fetch conversations.", e)

    # Stable sort keeps the store's order and moves empty conversations last
    rows = sorted(previews.data or [], key=lambda row: row.get("last_message_time") is None)

    unread = {}
    try:
        counts = (
            db.table("unread_message_counts")
            .select("conversation_id, unread_count")
            .eq("user_id", str(user_id))
            .execute()
        )
        unread = {row["conversation_id"]: row["unread_count"] for row in counts.data or []}
    except Exception as e:
        logger.error(f"get_unread_counts_failed user_id={user_id} error={e}")

    return [
        _conversation_from_preview(row, unread.get(row["conversation_id"], 0))
        for row in rows
    ]


def get_conversation_by_id(db: Client, conversation_id: str) -> Optional[dict]:
    try:
        preview = (
            db.table("conversation_previews")
            .select("*")
            .eq("conversation_id", str(conversation_id))
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_conversation_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to fetch conversation.", e)

    if not preview.data:
        return None

    try:
        full = (
            db.table("conversations")
            .select("*")
            .eq("id", str(conversation_id))
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_full_conversation_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to fetch conversation.", e)

    return _conversation_from_preview(
        preview.data[0], full=full.data[0] if full.data else None
    )


def get_participant(db: Client, conversation_id: str, user_id: str) -> Optional[dict]:
    """The participant row regardless of `is_active`, None when absent."""
    try:
        response = (
            db.table("conversation_participants")
            .select("*")
            .eq("conversation_id", str(conversation_id))
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise store_error("Failed to fetch participant.", e)

    return response.data[0] if response.data else None


def ensure_participant(
    db: Client, conversation_id: str, user_id: str, admin: bool = False
) -> dict:
    """Raise PermissionDenied unless the user is an active (admin) participant."""
    participant = get_participant(db, conversation_id, user_id)

    if not participant or not participant.get("is_active"):
        raise PermissionDenied("You are not a participant in this conversation.")

    if admin and participant.get("role") != ParticipantRole.admin.value:
        raise PermissionDenied("Only conversation admins can do this.")

    return participant


def get_conversation_participants(db: Client, conversation_id: str) -> List[dict]:
    try:
        response = (
            db.table("conversation_participants")
            .select("id, role, joined_at, user_id")
            .eq("conversation_id", str(conversation_id))
            .eq("is_active", True)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_participants_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to fetch participants.", e)

    rows = response.data or []
    names = _lookup_names(db, [row["user_id"] for row in rows])

    return [
        {
            "user_id": row["user_id"],
            "user_name": names.get(row["user_id"], ""),
            "user_avatar": None,
            "role": row["role"],
            "joined_at": row.get("joined_at"),
        }
        for row in rows
    ]


def get_message(db: Client, message_id: str) -> dict:
    try:
        response = (
            db.table("messages")
            .select("id, conversation_id, sender_id")
            .eq("id", str(message_id))
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise store_error("Failed to fetch message.", e)

    if not response.data:
        raise NotFoundError("Message not found.")

    return response.data[0]


def get_conversation_messages(
    db: Client, conversation_id: str, viewer_id: Optional[str] = None
) -> List[dict]:
    """Messages of a conversation, oldest first.

    When `viewer_id` is given the per-message read/delivered flags are those
    of that user.
    """
    try:
        response = (
            db.table("messages")
            .select(
                "id, conversation_id, sender_id, content, content_type, "
                "attachment_url, attachment_type, is_edited, created_at, updated_at"
            )
            .eq("conversation_id", str(conversation_id))
            .order("created_at", desc=False)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_messages_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to retrieve messages.", e)

    rows = response.data or []
    names = _lookup_names(db, [row.get("sender_id") for row in rows])
    statuses = _lookup_statuses(db, [row["id"] for row in rows], viewer_id)

    messages = []
    for row in rows:
        status = statuses.get(row["id"], {})
        sender_id = row.get("sender_id")
        messages.append(
            {
                **row,
                "sender_name": names.get(sender_id) if sender_id else None,
                "sender_avatar": None,
                "is_read": status.get("is_read", False),
                "is_delivered": status.get("is_delivered", False),
                "status_id": status.get("id"),
            }
        )
    return messages


def _lookup_statuses(db: Client, message_ids: List[str], viewer_id: Optional[str]) -> dict:
    if not viewer_id or not message_ids:
        return {}

    try:
        response = (
            db.table("message_status")
            .select("id, message_id, is_read, is_delivered")
            .in_("message_id", message_ids)
            .eq("user_id", str(viewer_id))
            .execute()
        )
    except Exception as e:
        logger.error(f"message_status_lookup_failed viewer_id={viewer_id} error={e}")
        return {}

    return {row["message_id"]: row for row in response.data or []}


def get_total_unread_messages(db: Client, user_id: str) -> int:
    try:
        response = (
            db.table("unread_message_counts")
            .select("unread_count")
            .eq("user_id", str(user_id))
            .execute()
        )
    except Exception as e:
        logger.error(f"get_unread_message_count_failed user_id={user_id} error={e}")
        raise store_error("Failed to fetch unread message count.", e)

    return sum(row.get("unread_count") or 0 for row in response.data or [])


# Conversation creation


def _conversation_ids_for(db: Client, user_id: str) -> List[str]:
    response = (
        db.table("conversation_participants")
        .select("conversation_id")
        .eq("user_id", str(user_id))
        .execute()
    )
    return [row["conversation_id"] for row in response.data or []]


def find_direct_conversation(db: Client, user_id: str, other_user_id: str) -> Optional[str]:
    """Id of an existing direct conversation between the two users, if any."""
    try:
        other_ids = set(_conversation_ids_for(db, other_user_id))
        common_ids = [cid for cid in _conversation_ids_for(db, user_id) if cid in other_ids]

        if not common_ids:
            return None

        direct = (
            db.table("conversations")
            .select("id")
            .in_("id", common_ids)
            .eq("type", ConversationType.direct.value)
            .execute()
        )
    except Exception as e:
        logger.error(
            f"find_direct_conversation_failed user_id={user_id} other_user_id={other_user_id} error={e}"
        )
        raise store_error("Failed to look up existing conversations.", e)

    return direct.data[0]["id"] if direct.data else None


def create_direct_conversation(db: Client, user_id: str, other_user_id: str) -> str:
    """Get or create the 1-on-1 conversation between two users.

    Returns the existing conversation id when one is found, whichever of the
    two users started it. A new conversation is titled with the other user's
    name and has the caller as admin.

    **Errors**
    - ValidationError: an id is missing, or both ids are the same user
    - NotFoundError: the other user does not exist
    - StoreError: any write failed
    """
    if not user_id or not other_user_id:
        raise ValidationError("Both user IDs are required.")

    user_id, other_user_id = str(user_id), str(other_user_id)
    if user_id == other_user_id:
        raise ValidationError("Cannot create a conversation with yourself.")

    existing_id = find_direct_conversation(db, user_id, other_user_id)
    if existing_id:
        logger.info(f"direct_conversation_exists conversation_id={existing_id}")
        return existing_id

    other_name = get_user_display_name(db, other_user_id)
    if other_name is None:
        raise NotFoundError(f"User with ID {other_user_id} not found.")

    conversation_id = str(uuid.uuid4())

    try:
        db.table("conversations").insert(
            {
                "id": conversation_id,
                "title": other_name or "Direct Message",
                "type": ConversationType.direct.value,
                "created_by": user_id,
            }
        ).execute()
    except Exception as e:
        logger.error(f"create_conversation_failed user_id={user_id} error={e}")
        raise store_error("Failed to create conversation.", e)

    try:
        db.table("conversation_participants").insert(
            [
                {
                    "conversation_id": conversation_id,
                    "user_id": user_id,
                    "role": ParticipantRole.admin.value,
                },
                {
                    "conversation_id": conversation_id,
                    "user_id": other_user_id,
                    "role": ParticipantRole.member.value,
                },
            ]
        ).execute()
    except Exception as e:
        logger.error(f"add_participants_failed conversation_id={conversation_id} error={e}")
        try:
            db.table("conversations").delete().eq("id", conversation_id).execute()
        except Exception as cleanup_error:
            logger.error(
                f"conversation_cleanup_failed conversation_id={conversation_id} error={cleanup_error}"
            )
        raise store_error("Failed to add conversation participants.", e)

    logger.info(f"direct_conversation_created conversation_id={conversation_id}")
    return conversation_id


def _create_multi_party_conversation(
    db: Client,
    conversation_type: ConversationType,
    title: str,
    creator_id: str,
    participant_ids: Iterable[str],
    organization_id: Optional[str],
) -> str:
    if not creator_id:
        raise ValidationError("A creator is required.")

    conversation_id = str(uuid.uuid4())

    try:
        db.table("conversations").insert(
            {
                "id": conversation_id,
                "title": title,
                "type": conversation_type.value,
                "created_by": str(creator_id),
                "organization_id": str(organization_id) if organization_id else None,
            }
        ).execute()
    except Exception as e:
        logger.error(f"create_{conversation_type.value}_conversation_failed error={e}")
        raise store_error("Failed to create conversation.", e)

    creator_id = str(creator_id)
    participants = [
        {
            "conversation_id": conversation_id,
            "user_id": participant_id,
            "role": (
                ParticipantRole.admin.value
                if participant_id == creator_id
                else ParticipantRole.member.value
            ),
        }
        for participant_id in unique_participant_ids(creator_id, participant_ids)
    ]

    # No rollback here: the conversation row stays if this insert fails
    try:
        db.table("conversation_participants").insert(participants).execute()
    except Exception as e:
        logger.error(f"add_participants_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to add conversation participants.", e)

    logger.info(
        f"{conversation_type.value}_conversation_created conversation_id={conversation_id} "
        f"participants={len(participants)}"
    )
    return conversation_id


def create_group_conversation(
    db: Client,
    title: str,
    creator_id: str,
    participant_ids: Iterable[str],
    organization_id: Optional[str] = None,
) -> str:
    return _create_multi_party_conversation(
        db, ConversationType.group, title, creator_id, participant_ids, organization_id
    )


def create_announcement_conversation(
    db: Client,
    title: str,
    creator_id: str,
    organization_id: str,
    participant_ids: Iterable[str],
) -> str:
    return _create_multi_party_conversation(
        db,
        ConversationType.announcement,
        title,
        creator_id,
        participant_ids,
        organization_id,
    )


# Messages


def send_message(
    db: Client,
    conversation_id: str,
    sender_id: Optional[str],
    content: Optional[str],
    content_type: str = "text",
    attachment_url: Optional[str] = None,
    attachment_type: Optional[str] = None,
) -> str:
    """Insert a message and notify the other participants.

    Only the insert can fail the call; notification problems are logged.
    Returns the new message id.
    """
    if not conversation_id:
        raise ValidationError("A conversation is required.")

    try:
        content_type = ContentType(content_type).value
    except ValueError:
        raise ValidationError(f"Unsupported content type: {content_type}")

    message_id = str(uuid.uuid4())
    content = content or ""

    try:
        response = (
            db.table("messages")
            .insert(
                {
                    "id": message_id,
                    "conversation_id": str(conversation_id),
                    "sender_id": str(sender_id) if sender_id else None,
                    "content": content,
                    "content_type": content_type,
                    "attachment_url": attachment_url,
                    "attachment_type": attachment_type,
                }
            )
            .execute()
        )
    except Exception as e:
        logger.error(f"send_message_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to send message.", e)

    if response.data:
        message_id = response.data[0].get("id", message_id)

    try:
        notify_message_recipients(
            db, str(conversation_id), sender_id, content, content_type
        )
    except Exception as e:
        logger.error(f"message_notification_failed message_id={message_id} error={e}")

    return message_id


def notify_message_recipients(
    db: Client,
    conversation_id: str,
    sender_id: Optional[str],
    content: str,
    content_type: str = "text",
) -> int:
    """Notify every other participant about a new message.

    Returns how many notifications were created.
    """
    conversation = (
        db.table("conversations")
        .select("id, title, type, organization_id")
        .eq("id", conversation_id)
        .limit(1)
        .execute()
    )
    conversation = conversation.data[0] if conversation.data else {}

    query = (
        db.table("conversation_participants")
        .select("user_id")
        .eq("conversation_id", conversation_id)
        .eq("is_active", True)
    )
    if sender_id:
        query = query.neq("user_id", str(sender_id))
    participants = query.execute().data or []

    if not participants:
        return 0

    sender_name = get_email_handle(db, sender_id) if sender_id else "System"
    preview = build_message_preview(content, content_type)

    created = 0
    for participant in participants:
        notification_id = create_notification(
            db,
            participant["user_id"],
            f"New message from {sender_name}",
            preview,
            "message",
            MESSAGING_LINK,
            {
                "conversationId": conversation_id,
                "senderId": str(sender_id) if sender_id else None,
                "senderName": sender_name,
                "organizationId": conversation.get("organization_id"),
            },
            "medium",
        )
        if notification_id:
            created += 1

    return created


def edit_message(db: Client, message_id: str, new_content: str) -> bool:
    try:
        response = (
            db.table("messages")
            .update({"content": new_content, "is_edited": True, "updated_at": _now()})
            .eq("id", str(message_id))
            .execute()
        )
    except Exception as e:
        logger.error(f"edit_message_failed message_id={message_id} error={e}")
        raise store_error("Failed to edit message.", e)

    if not response.data:
        raise NotFoundError("Message not found.")

    return True


# Read state


def mark_conversation_as_read(db: Client, conversation_id: str, user_id: str) -> bool:
    """Advance the participant's last_read_at and mark incoming messages read.

    The two writes are not atomic: if the second fails last_read_at has
    already moved. Every message of the conversation is selected, system
    messages (NULL sender) included; the reader only has status rows for
    messages they did not send.
    """
    now = _now()

    try:
        db.table("conversation_participants").update({"last_read_at": now}).eq(
            "conversation_id", str(conversation_id)
        ).eq("user_id", str(user_id)).execute()
    except Exception as e:
        logger.error(f"mark_read_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to mark conversation as read.", e)

    try:
        messages = (
            db.table("messages")
            .select("id")
            .eq("conversation_id", str(conversation_id))
            .execute()
        )
    except Exception as e:
        logger.error(f"mark_read_fetch_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to mark conversation as read.", e)

    message_ids = [row["id"] for row in messages.data or []]
    if not message_ids:
        return True

    try:
        db.table("message_status").update({"is_read": True, "read_at": now}).in_(
            "message_id", message_ids
        ).eq("user_id", str(user_id)).execute()
    except Exception as e:
        logger.error(f"mark_read_status_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to update message status.", e)

    return True


# Participants


def add_conversation_participant(
    db: Client, conversation_id: str, user_id: str, role: str = "member"
) -> bool:
    """Add a participant, or re-activate one that was removed."""
    try:
        role = ParticipantRole(role).value
    except ValueError:
        raise ValidationError(f"Unsupported role: {role}")

    now = _now()
    try:
        db.table("conversation_participants").upsert(
            {
                "conversation_id": str(conversation_id),
                "user_id": str(user_id),
                "role": role,
                "is_active": True,
                "last_read_at": now,
                "joined_at": now,
            },
            on_conflict="conversation_id,user_id",
        ).execute()
    except Exception as e:
        logger.error(f"add_participant_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to add participant.", e)

    return True


def remove_conversation_participant(db: Client, conversation_id: str, user_id: str) -> bool:
    """Soft delete: the participant row is kept with is_active=false."""
    try:
        db.table("conversation_participants").update({"is_active": False}).eq(
            "conversation_id", str(conversation_id)
        ).eq("user_id", str(user_id)).execute()
    except Exception as e:
        logger.error(f"remove_participant_failed conversation_id={conversation_id} error={e}")
        raise store_error("Failed to remove participant.", e)

    return True
