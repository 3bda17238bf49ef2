import pytest

from agrilink.core.errors import NotFoundError, StoreError, ValidationError
from agrilink.messaging import service

from fake_supabase import api_error


def test_direct_conversation_is_reused_on_second_call(db, alice, bob):
    first = service.create_direct_conversation(db, alice, bob)
    second = service.create_direct_conversation(db, alice, bob)

    assert first == second
    assert len(db.tables["conversations"]) == 1


def test_direct_conversation_is_found_with_reversed_arguments(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)

    assert service.create_direct_conversation(db, bob, alice) == conversation_id


def test_direct_conversation_roles_and_title(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)

    conversation = db.tables["conversations"][0]
    assert conversation["type"] == "direct"
    assert conversation["title"] == "Bob Otieno"
    assert conversation["created_by"] == alice

    roles = {
        p["user_id"]: p["role"]
        for p in db.tables["conversation_participants"]
        if p["conversation_id"] == conversation_id
    }
    assert roles == {alice: "admin", bob: "member"}


def test_direct_conversation_title_falls_back_when_user_has_no_name(db, alice):
    nameless = db.add_user("", "", "anon@farm.test")

    service.create_direct_conversation(db, alice, nameless)

    assert db.tables["conversations"][0]["title"] == "Direct Message"


def test_group_conversation_with_same_pair_is_not_reused(db, alice, bob):
    group_id = service.create_group_conversation(db, "Harvest", alice, [bob])
    direct_id = service.create_direct_conversation(db, alice, bob)

    assert direct_id != group_id


@pytest.mark.parametrize("user_id, other_user_id", [("", "b"), ("a", ""), (None, "b")])
def test_direct_conversation_requires_both_ids(db, user_id, other_user_id):
    with pytest.raises(ValidationError):
        service.create_direct_conversation(db, user_id, other_user_id)

    assert db.calls == []


def test_direct_conversation_with_self_fails_before_any_store_access(db, alice):
    with pytest.raises(ValidationError):
        service.create_direct_conversation(db, alice, alice)

    assert db.calls == []


def test_direct_conversation_with_unknown_user(db, alice):
    with pytest.raises(NotFoundError):
        service.create_direct_conversation(db, alice, "3f1c9d2e-0000-4000-8000-000000000000")

    assert "conversations" not in db.tables


def test_direct_conversation_is_removed_when_participants_fail(db, alice, bob):
    db.fail("conversation_participants", "insert")

    with pytest.raises(StoreError):
        service.create_direct_conversation(db, alice, bob)

    assert db.tables["conversations"] == []


def test_direct_conversation_cleanup_failure_still_raises_original_error(db, alice, bob):
    db.fail("conversation_participants", "insert")
    db.fail("conversations", "delete")

    with pytest.raises(StoreError) as excinfo:
        service.create_direct_conversation(db, alice, bob)

    assert excinfo.value.message == "Failed to add conversation participants."
    assert len(db.tables["conversations"]) == 1


def test_group_conversation_participants(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(
        db, "Maize growers", alice, [bob, alice, carol, bob], "org-1"
    )

    participants = service.get_conversation_participants(db, conversation_id)

    assert sorted((p["user_id"], p["role"]) for p in participants) == sorted(
        [(alice, "admin"), (bob, "member"), (carol, "member")]
    )
    conversation = db.tables["conversations"][0]
    assert conversation["type"] == "group"
    assert conversation["organization_id"] == "org-1"


def test_group_conversation_keeps_row_when_participants_fail(db, alice, bob):
    db.fail("conversation_participants", "insert")

    with pytest.raises(StoreError):
        service.create_group_conversation(db, "Harvest", alice, [bob])

    assert len(db.tables["conversations"]) == 1


def test_announcement_conversation(db, alice, bob, carol):
    conversation_id = service.create_announcement_conversation(
        db, "Season notice", alice, "org-9", [bob, carol]
    )

    conversation = service.get_conversation_by_id(db, conversation_id)
    assert conversation["type"] == "announcement"
    assert conversation["organization_id"] == "org-9"
    assert conversation["participant_count"] == 3


def test_unique_participant_ids_puts_creator_first():
    assert service.unique_participant_ids("c", ["a", "c", "b", "a"]) == ["c", "a", "b"]


def test_sent_message_is_last_in_conversation(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    service.send_message(db, conversation_id, alice, "first")
    message_id = service.send_message(db, conversation_id, bob, "Rain expected on Friday")

    messages = service.get_conversation_messages(db, conversation_id)

    assert messages[-1]["id"] == message_id
    assert messages[-1]["content"] == "Rain expected on Friday"
    assert messages[-1]["sender_name"] == "Bob Otieno"
    assert [m["content"] for m in messages] == ["first", "Rain expected on Friday"]


def test_send_message_notifies_other_participants(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(db, "Co-op", alice, [bob, carol], "org-1")

    service.send_message(db, conversation_id, alice, "Meeting at noon")

    notifications = db.tables["notifications"]
    assert sorted(n["user_id"] for n in notifications) == sorted([bob, carol])
    notification = notifications[0]
    assert notification["title"] == "New message from alice"
    assert notification["message"] == "Meeting at noon"
    assert notification["category"] == "message"
    assert notification["link"] == "/farmer/messaging"
    assert notification["metadata"] == {
        "conversationId": conversation_id,
        "senderId": alice,
        "senderName": "alice",
        "organizationId": "org-1",
    }


def test_image_message_preview(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(db, "Photos", alice, [bob, carol])

    service.send_message(db, conversation_id, alice, None, "image", "https://cdn/x.png", "image/png")

    assert [n["message"] for n in db.tables["notifications"]] == [
        "Sent you an image",
        "Sent you an image",
    ]


def test_removed_participant_is_not_notified(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(db, "Co-op", alice, [bob, carol])
    service.remove_conversation_participant(db, conversation_id, carol)

    service.send_message(db, conversation_id, alice, "hello")

    assert [n["user_id"] for n in db.tables["notifications"]] == [bob]


@pytest.mark.parametrize(
    "content, content_type, expected",
    [
        ("short", "text", "short"),
        ("x" * 50, "text", "x" * 50),
        ("x" * 51, "text", "x" * 47 + "..."),
        ("", "image", "Sent you an image"),
        ("report.pdf", "file", "Sent you a file"),
        (None, "text", ""),
    ],
)
def test_build_message_preview(content, content_type, expected):
    assert service.build_message_preview(content, content_type) == expected


def test_send_message_succeeds_when_notifications_fail(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    db.fail("rpc", "send_notification")

    message_id = service.send_message(db, conversation_id, alice, "still delivered")

    assert any(m["id"] == message_id for m in db.tables["messages"])
    assert "notifications" not in db.tables


def test_send_message_succeeds_when_recipient_lookup_fails(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    db.fail("conversation_participants", "select")

    message_id = service.send_message(db, conversation_id, alice, "still delivered")

    assert message_id


def test_notification_failure_for_one_recipient_does_not_stop_others(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(db, "Co-op", alice, [bob, carol])
    db.fail("rpc", "send_notification", times=1)

    service.send_message(db, conversation_id, alice, "hello")

    assert len(db.tables["notifications"]) == 1


def test_send_message_insert_failure_propagates(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    db.fail("messages", "insert", api_error("insert failed"))

    with pytest.raises(StoreError) as excinfo:
        service.send_message(db, conversation_id, alice, "lost")

    assert "insert failed" in str(excinfo.value)
    assert "notifications" not in db.tables


def test_send_message_rejects_unknown_content_type(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)

    with pytest.raises(ValidationError):
        service.send_message(db, conversation_id, alice, "hi", "video")


def test_mark_conversation_as_read_clears_unread_count(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    service.send_message(db, conversation_id, alice, "one")
    service.send_message(db, conversation_id, alice, "two")
    assert service.get_total_unread_messages(db, bob) == 2

    assert service.mark_conversation_as_read(db, conversation_id, bob) is True

    assert service.get_total_unread_messages(db, bob) == 0
    participant = service.get_participant(db, conversation_id, bob)
    assert participant["last_read_at"]


def test_mark_as_read_clears_system_messages(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    service.send_message(db, conversation_id, None, "Bob joined", "system")
    service.send_message(db, conversation_id, alice, "hi")
    assert service.get_total_unread_messages(db, bob) == 2

    service.mark_conversation_as_read(db, conversation_id, bob)

    assert service.get_total_unread_messages(db, bob) == 0
    assert service.get_total_unread_messages(db, alice) == 1


def test_mark_as_read_only_touches_the_reader(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(db, "Co-op", alice, [bob, carol])
    service.send_message(db, conversation_id, alice, "one")

    service.mark_conversation_as_read(db, conversation_id, bob)

    assert service.get_total_unread_messages(db, bob) == 0
    assert service.get_total_unread_messages(db, carol) == 1


def test_mark_as_read_leaves_last_read_at_when_status_update_fails(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    service.send_message(db, conversation_id, alice, "one")
    before = service.get_participant(db, conversation_id, bob)["last_read_at"]
    db.fail("message_status", "update")

    with pytest.raises(StoreError):
        service.mark_conversation_as_read(db, conversation_id, bob)

    assert service.get_participant(db, conversation_id, bob)["last_read_at"] != before
    assert service.get_total_unread_messages(db, bob) == 1


def test_messages_carry_viewer_read_state(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    service.send_message(db, conversation_id, alice, "one")
    service.mark_conversation_as_read(db, conversation_id, bob)

    messages = service.get_conversation_messages(db, conversation_id, viewer_id=bob)

    assert messages[0]["is_read"] is True
    assert messages[0]["status_id"]


def test_system_messages_have_no_sender_name(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)

    service.send_message(db, conversation_id, None, "Bob joined", "system")

    message = service.get_conversation_messages(db, conversation_id)[0]
    assert message["sender_id"] is None
    assert message["sender_name"] is None


def test_edit_message(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    message_id = service.send_message(db, conversation_id, alice, "typo")

    service.edit_message(db, message_id, "fixed")

    message = service.get_conversation_messages(db, conversation_id)[0]
    assert message["content"] == "fixed"
    assert message["is_edited"] is True


def test_edit_missing_message(db):
    with pytest.raises(NotFoundError):
        service.edit_message(db, "missing", "text")


def test_remove_participant_is_a_soft_delete(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(db, "Co-op", alice, [bob, carol])

    service.remove_conversation_participant(db, conversation_id, carol)

    active = [p["user_id"] for p in service.get_conversation_participants(db, conversation_id)]
    assert carol not in active
    row = service.get_participant(db, conversation_id, carol)
    assert row is not None
    assert row["is_active"] is False


def test_add_participant_reactivates_removed_participant(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(db, "Co-op", alice, [bob, carol])
    service.remove_conversation_participant(db, conversation_id, carol)

    service.add_conversation_participant(db, conversation_id, carol, "admin")

    rows = [
        p
        for p in db.tables["conversation_participants"]
        if p["conversation_id"] == conversation_id and p["user_id"] == carol
    ]
    assert len(rows) == 1
    assert rows[0]["is_active"] is True
    assert rows[0]["role"] == "admin"


def test_add_participant_rejects_unknown_role(db, alice):
    with pytest.raises(ValidationError):
        service.add_conversation_participant(db, "conv", alice, "owner")


def test_user_conversations_are_ordered_by_last_message(db, alice, bob, carol):
    quiet = service.create_group_conversation(db, "Quiet", alice, [carol])
    older = service.create_direct_conversation(db, alice, bob)
    newer = service.create_group_conversation(db, "Busy", alice, [bob, carol])
    service.send_message(db, older, bob, "old news")
    service.send_message(db, newer, carol, "fresh news")

    conversations = service.get_user_conversations(db, alice)

    assert [c["id"] for c in conversations] == [newer, older, quiet]
    assert conversations[0]["last_message_content"] == "fresh news"
    assert conversations[0]["last_sender_name"] == "Carol Njeri"
    assert conversations[0]["unread_count"] == 1
    assert conversations[2]["last_message_time"] is None


def test_user_conversations_skip_inactive(db, alice, bob, carol):
    conversation_id = service.create_group_conversation(db, "Co-op", alice, [bob, carol])
    service.remove_conversation_participant(db, conversation_id, carol)

    assert service.get_user_conversations(db, carol) == []


def test_user_conversations_without_unread_counts(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    service.send_message(db, conversation_id, alice, "hi")
    db.fail("unread_message_counts", "select")

    conversations = service.get_user_conversations(db, bob)

    assert conversations[0]["unread_count"] == 0


def test_user_conversations_for_new_user_makes_one_query(db, alice):
    assert service.get_user_conversations(db, alice) == []
    assert db.calls == [("conversation_participants", "select")]


def test_get_conversation_by_id_missing(db):
    assert service.get_conversation_by_id(db, "nope") is None


def test_participant_names_survive_user_lookup_failure(db, alice, bob):
    conversation_id = service.create_direct_conversation(db, alice, bob)
    db.fail("users", "select")

    participants = service.get_conversation_participants(db, conversation_id)

    assert {p["user_name"] for p in participants} == {""}
