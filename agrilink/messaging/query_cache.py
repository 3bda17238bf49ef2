"""
Per-user query cache over the messaging service.

Queries are cached under tuple keys such as ("messages", conversation_id).
Mutations go straight to the service and, once they succeed, invalidate
every key they could have changed. Invalidation matches by prefix, so
invalidating ("conversations",) drops the entry of every user. Nothing is
updated optimistically: after a mutation the next read refetches.
"""

import logging
from typing import Any, Callable, Hashable, Iterable, List, Optional, Tuple

from supabase import Client

from agrilink.core.errors import AuthenticationError

from . import service

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]


class QueryCache:
    def __init__(self):
        self._entries: dict = {}

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    def fetch(self, key: QueryKey, query_fn: Callable[[], Any]) -> Any:
        """Return the cached value for `key`, running `query_fn` on a miss.

        Errors are not cached.
        """
        if key in self._entries:
            return self._entries[key]

        value = query_fn()
        self._entries[key] = value
        return value

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with `prefix`."""
        stale = [key for key in self._entries if key[: len(prefix)] == tuple(prefix)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def invalidate_many(self, prefixes: Iterable[QueryKey]) -> int:
        return sum(self.invalidate(prefix) for prefix in prefixes)

    def clear(self):
        self._entries.clear()


class MessagingQueryClient:
    """Messaging queries and mutations for one signed-in user."""

    def __init__(self, db: Client, user_id: Optional[str], cache: Optional[QueryCache] = None):
        self.db = db
        self.user_id = str(user_id) if user_id else None
        self.cache = cache if cache is not None else QueryCache()

    def _require_user(self) -> str:
        if not self.user_id:
            raise AuthenticationError("User is not authenticated")
        return self.user_id

    def _mutate(self, mutation_fn: Callable[[], Any], invalidates: Iterable[QueryKey]) -> Any:
        result = mutation_fn()
        dropped = self.cache.invalidate_many(invalidates)
        logger.debug(f"mutation_invalidated entries={dropped}")
        return result

    # Queries

    def conversations(self) -> List[dict]:
        if not self.user_id:
            return []
        return self.cache.fetch(
            ("conversations", self.user_id),
            lambda: service.get_user_conversations(self.db, self.user_id),
        )

    def unread_count(self) -> int:
        if not self.user_id:
            return 0
        return self.cache.fetch(
            ("unreadMessages", self.user_id),
            lambda: service.get_total_unread_messages(self.db, self.user_id),
        )

    def conversation_messages(self, conversation_id: Optional[str]) -> List[dict]:
        if not conversation_id:
            return []
        return self.cache.fetch(
            ("messages", str(conversation_id)),
            lambda: service.get_conversation_messages(
                self.db, conversation_id, viewer_id=self.user_id
            ),
        )

    def conversation_participants(self, conversation_id: Optional[str]) -> List[dict]:
        if not conversation_id:
            return []
        return self.cache.fetch(
            ("participants", str(conversation_id)),
            lambda: service.get_conversation_participants(self.db, conversation_id),
        )

    def conversation(self, conversation_id: Optional[str]) -> Optional[dict]:
        if not conversation_id:
            return None
        return self.cache.fetch(
            ("conversation", str(conversation_id)),
            lambda: service.get_conversation_by_id(self.db, conversation_id),
        )

    def refetch_conversations(self) -> List[dict]:
        self.cache.invalidate(("conversations", self.user_id))
        return self.conversations()

    def refetch_unread_count(self) -> int:
        self.cache.invalidate(("unreadMessages", self.user_id))
        return self.unread_count()

    # Mutations

    def create_direct_conversation(self, other_user_id: str) -> str:
        user_id = self._require_user()
        return self._mutate(
            lambda: service.create_direct_conversation(self.db, user_id, other_user_id),
            [("conversations",)],
        )

    def create_group_conversation(
        self,
        title: str,
        participant_ids: Iterable[str],
        organization_id: Optional[str] = None,
    ) -> str:
        user_id = self._require_user()
        return self._mutate(
            lambda: service.create_group_conversation(
                self.db, title, user_id, participant_ids, organization_id
            ),
            [("conversations",)],
        )

    def create_announcement_conversation(
        self, title: str, organization_id: str, participant_ids: Iterable[str]
    ) -> str:
        user_id = self._require_user()
        return self._mutate(
            lambda: service.create_announcement_conversation(
                self.db, title, user_id, organization_id, participant_ids
            ),
            [("conversations",)],
        )

    def send_message(
        self,
        conversation_id: str,
        content: str,
        content_type: Optional[str] = None,
        attachment_url: Optional[str] = None,
        attachment_type: Optional[str] = None,
    ) -> str:
        user_id = self._require_user()
        conversation_id = str(conversation_id)
        return self._mutate(
            lambda: service.send_message(
                self.db,
                conversation_id,
                user_id,
                content,
                content_type or "text",
                attachment_url,
                attachment_type,
            ),
            [("messages", conversation_id), ("conversations",)],
        )

    def mark_conversation_as_read(self, conversation_id: str) -> bool:
        user_id = self._require_user()
        conversation_id = str(conversation_id)
        return self._mutate(
            lambda: service.mark_conversation_as_read(self.db, conversation_id, user_id),
            [("messages", conversation_id), ("conversations",), ("unreadMessages",)],
        )

    def edit_message(self, message_id: str, new_content: str, conversation_id: str) -> bool:
        return self._mutate(
            lambda: service.edit_message(self.db, message_id, new_content),
            [("messages", str(conversation_id))],
        )

    def add_participant(self, conversation_id: str, participant_id: str, role: Optional[str] = None) -> bool:
        return self._mutate(
            lambda: service.add_conversation_participant(
                self.db, conversation_id, participant_id, role or "member"
            ),
            [("participants", str(conversation_id))],
        )

    def remove_participant(self, conversation_id: str, participant_id: str) -> bool:
        return self._mutate(
            lambda: service.remove_conversation_participant(
                self.db, conversation_id, participant_id
            ),
            [("participants", str(conversation_id))],
        )

    # Helpers

    def start_direct_conversation(self, other_user_id: str) -> Optional[str]:
        if not self.user_id:
            return None
        return self.create_direct_conversation(other_user_id)

    def send_message_to_conversation(
        self,
        conversation_id: str,
        content: str,
        content_type: Optional[str] = None,
        attachment_url: Optional[str] = None,
        attachment_type: Optional[str] = None,
    ) -> Optional[str]:
        if not self.user_id:
            return None
        return self.send_message(
            conversation_id, content, content_type, attachment_url, attachment_type
        )
