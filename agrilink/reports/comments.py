"""
Field report comments and their realtime feed.

Comments live in `report_comments`. `CommentFeed` is a client-side helper: a
local, ordered copy of a report's comments that consumers of
`subscribe_to_comments` (or of raw `parse_change_event` output) keep in sync
with the `report_comments:{report_id}` realtime channel.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from supabase import Client

from agrilink.core.errors import NotFoundError, store_error
from agrilink.utils.display_name import format_full_name

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _with_authors(db: Client, comments: List[dict]) -> List[dict]:
    """Attach `user` (id, full_name, avatar_url) to each comment.

    Author lookup failures leave `user` empty.
    """
    user_ids = sorted({row["user_id"] for row in comments if row.get("user_id")})
    authors = {}

    if user_ids:
        try:
            users = (
                db.table("users")
                .select("id, first_name, last_name")
                .in_("id", user_ids)
                .execute()
            )
            authors = {
                row["id"]: {
                    "id": row["id"],
                    "full_name": format_full_name(row),
                    "avatar_url": None,
                }
                for row in users.data or []
            }
        except Exception as e:
            logger.error(f"comment_author_lookup_failed count={len(user_ids)} error={e}")

    return [{**row, "user": authors.get(row.get("user_id"))} for row in comments]


def get_report_comments(db: Client, report_id: str) -> List[dict]:
    try:
        response = (
            db.table("report_comments")
            .select("*")
            .eq("report_id", str(report_id))
            .order("created_at", desc=False)
            .execute()
        )
    except Exception as e:
        logger.error(f"get_report_comments_failed report_id={report_id} error={e}")
        raise store_error("Failed to fetch report comments.", e)

    return _with_authors(db, response.data or [])


def get_comment(db: Client, comment_id: str) -> dict:
    try:
        response = (
            db.table("report_comments").select("*").eq("id", str(comment_id)).limit(1).execute()
        )
    except Exception as e:
        raise store_error("Failed to fetch comment.", e)

    if not response.data:
        raise NotFoundError("Comment not found.")

    return response.data[0]


def create_comment(
    db: Client,
    report_id: str,
    user_id: str,
    content: str,
    parent_comment_id: Optional[str] = None,
    is_internal: bool = False,
) -> dict:
    try:
        response = (
            db.table("report_comments")
            .insert(
                {
                    "report_id": str(report_id),
                    "user_id": str(user_id),
                    "content": content,
                    "parent_comment_id": str(parent_comment_id) if parent_comment_id else None,
                    "is_internal": is_internal,
                }
            )
            .execute()
        )
    except Exception as e:
        logger.error(f"create_comment_failed report_id={report_id} error={e}")
        raise store_error("Failed to create comment.", e)

    return _with_authors(db, response.data[:1])[0]


def update_comment(db: Client, comment_id: str, content: str) -> dict:
    try:
        response = (
            db.table("report_comments")
            .update({"content": content, "updated_at": _now()})
            .eq("id", str(comment_id))
            .execute()
        )
    except Exception as e:
        logger.error(f"update_comment_failed comment_id={comment_id} error={e}")
        raise store_error("Failed to update comment.", e)

    if not response.data:
        raise NotFoundError("Comment not found.")

    return _with_authors(db, response.data[:1])[0]


def delete_comment(db: Client, comment_id: str) -> bool:
    try:
        db.table("report_comments").delete().eq("id", str(comment_id)).execute()
    except Exception as e:
        logger.error(f"delete_comment_failed comment_id={comment_id} error={e}")
        raise store_error("Failed to delete comment.", e)

    return True


class CommentFeed:
    """Local copy of a report's comments kept in sync by change events."""

    def __init__(self, comments: Optional[List[dict]] = None):
        self.comments: List[dict] = list(comments or [])

    def __len__(self):
        return len(self.comments)

    def __iter__(self):
        return iter(self.comments)

    def ids(self) -> List[str]:
        return [comment["id"] for comment in self.comments]

    def upsert(self, comment: dict):
        """Replace the comment with the same id in place, or append it."""
        for index, existing in enumerate(self.comments):
            if existing["id"] == comment["id"]:
                self.comments[index] = comment
                return
        self.comments.append(comment)

    def remove(self, comment_id: str) -> bool:
        before = len(self.comments)
        self.comments = [c for c in self.comments if c["id"] != comment_id]
        return len(self.comments) != before

    def apply(self, event_type: str, record: Optional[dict], old_record: Optional[dict] = None):
        event_type = (event_type or "").upper()
        if event_type in ("INSERT", "UPDATE") and record:
            self.upsert(record)
        elif event_type == "DELETE":
            target = old_record or record or {}
            if target.get("id"):
                self.remove(target["id"])


def parse_change_event(payload: Dict[str, Any]) -> tuple:
    """(event_type, new_record, old_record) from a postgres_changes payload."""
    data = payload.get("data", payload)
    event_type = data.get("type") or data.get("eventType") or ""
    record = data.get("record") or data.get("new") or None
    old_record = data.get("old_record") or data.get("old") or None
    return event_type.upper(), record, old_record


def make_comment_change_handler(
    db: Client, report_id: str, callback: Callable[[dict], None]
) -> Callable[[Dict[str, Any]], Awaitable[None]]:
    """Coroutine handler refetching the enriched comment for INSERT and UPDATE.

    The refetch uses the sync client, so it runs in a worker thread and the
    event loop keeps serving the realtime socket meanwhile.
    """

    async def handle(payload: Dict[str, Any]):
        try:
            event_type, record, _ = parse_change_event(payload)
            if event_type not in ("INSERT", "UPDATE") or not record:
                return

            comments = await asyncio.to_thread(get_report_comments, db, report_id)
            comment = next((c for c in comments if c["id"] == record.get("id")), None)
            if comment:
                callback(comment)
        except Exception as e:
            logger.error(f"comment_change_failed report_id={report_id} error={e}")

    return handle


async def subscribe_to_comments(
    realtime_client, db: Client, report_id: str, callback: Callable[[dict], None]
):
    """Subscribe to comment changes of a report.

    `realtime_client` is an async Supabase client; `db` is used to refetch
    comments with their authors. Each change event schedules a refetch task
    on the running loop. Returns a coroutine function that waits for pending
    refetches and unsubscribes.

    A client usually keeps a `CommentFeed` up to date with it:

        feed = CommentFeed(get_report_comments(db, report_id))
        unsubscribe = await subscribe_to_comments(client, db, report_id, feed.upsert)
    """
    handle = make_comment_change_handler(db, report_id, callback)
    pending: Set[asyncio.Task] = set()

    def on_change(payload: Dict[str, Any]):
        task = asyncio.get_running_loop().create_task(handle(payload))
        pending.add(task)
        task.add_done_callback(pending.discard)

    try:
        channel = realtime_client.channel(f"report_comments:{report_id}")
        channel.on_postgres_changes(
            "*",
            schema="public",
            table="report_comments",
            filter=f"report_id=eq.{report_id}",
            callback=on_change,
        )
        await channel.subscribe()
    except Exception as e:
        logger.error(f"comment_subscription_failed report_id={report_id} error={e}")
        raise store_error("Failed to setup comment subscription.", e)

    logger.info(f"comment_subscription_started report_id={report_id}")

    async def unsubscribe():
        if pending:
            await asyncio.gather(*pending)
        await channel.unsubscribe()
        logger.info(f"comment_subscription_stopped report_id={report_id}")

    return unsubscribe
