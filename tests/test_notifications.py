from agrilink.notifications import service

from fake_supabase import api_error


def test_create_notification_returns_id(db, alice):
    notification_id = service.create_notification(
        db, alice, "Frost warning", "Cover seedlings tonight", "alert", "/farmer/alerts", {"plot": 3}, "high"
    )

    row = db.tables["notifications"][0]
    assert row["id"] == notification_id
    assert row["category"] == "alert"
    assert row["priority"] == "high"
    assert row["metadata"] == {"plot": 3}
    assert db.rpc_calls[0][1]["p_link"] == "/farmer/alerts"


def test_create_notification_returns_none_on_failure(db, alice):
    db.fail("rpc", "send_notification", api_error("permission denied", "42501"))

    assert service.create_notification(db, alice, "t", "m") is None


def test_notify_users_continues_after_a_failure(db, alice, bob, carol):
    db.fail("rpc", "send_notification", times=1)

    created = service.notify_users(db, [alice, bob, carol], "Market day", "Prices updated")

    assert len(created) == 2
    assert sorted(n["user_id"] for n in db.tables["notifications"]) == sorted([bob, carol])


def test_missing_procedures_are_soft_failures(db, alice):
    assert service.create_notification_from_template(db, alice, "welcome", {}) is None
    assert service.send_batch_notification(db, [alice], "t", "m") is None


def test_batch_notification_uses_single_call(db, alice, bob):
    db.rpc_handlers["send_notification_batch"] = lambda params: ["n1", "n2"]

    assert service.send_batch_notification(db, [alice, bob], "t", "m") == ["n1", "n2"]
    assert [name for name, _ in db.rpc_calls] == ["send_notification_batch"]


def test_user_notifications_newest_first_and_unread_filter(db, alice, bob):
    first = service.create_notification(db, alice, "first", "m")
    second = service.create_notification(db, alice, "second", "m")
    service.create_notification(db, bob, "other user", "m")
    service.mark_notification_as_read(db, first, alice)

    assert [n["id"] for n in service.get_user_notifications(db, alice)] == [second, first]
    assert [n["id"] for n in service.get_user_notifications(db, alice, only_unread=True)] == [
        second
    ]
    assert service.get_unread_notification_count(db, alice) == 1


def test_mark_all_and_delete(db, alice):
    kept = service.create_notification(db, alice, "a", "m")
    removed = service.create_notification(db, alice, "b", "m")

    assert service.mark_all_notifications_as_read(db, alice) is True
    assert service.get_unread_notification_count(db, alice) == 0

    assert service.delete_notification(db, removed, alice) is True
    assert [n["id"] for n in service.get_user_notifications(db, alice)] == [kept]


def test_read_failures_return_empty_results(db, alice):
    db.fail("notifications", "select")
    db.fail("notifications", "update")

    assert service.get_user_notifications(db, alice) == []
    assert service.get_unread_notification_count(db, alice) == 0
    assert service.mark_all_notifications_as_read(db, alice) is False


def test_preferences_upsert(db, alice):
    assert service.get_notification_preferences(db, alice) is None

    assert service.update_notification_preferences(db, alice, {"email_enabled": False})
    assert service.update_notification_preferences(
        db, alice, {"push_enabled": False, "user_id": "someone-else"}
    )

    rows = db.tables["notification_preferences"]
    assert len(rows) == 1
    assert rows[0]["user_id"] == alice
    assert rows[0]["email_enabled"] is False
    assert rows[0]["push_enabled"] is False
