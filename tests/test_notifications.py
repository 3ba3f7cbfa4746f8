"""
Tests for notification formatting, channel rules and in-app delivery.
"""

from portal.domain.notifications.formatting import (
    DEFAULT_PREFERENCES,
    format_notification_message,
    get_notification_priority,
    get_recipient,
    merge_preferences,
    should_send_notification,
)
from portal.models import NotificationLog

# =============================================================================
# Formatting and channel rules
# =============================================================================


class TestFormatting:
    """Tests for notification templates."""

    def test_comment_message(self):
        content = format_notification_message(
            "ticket_comment",
            {"ticket_number": "TKT-1001", "ticket_subject": "Login", "commenter_name": "Sam", "comment_preview": "On it"},
        )
        assert content["subject"] == "New Comment on Ticket #TKT-1001"
        assert content["message"].startswith('Sam commented on ticket #TKT-1001 "Login"')
        assert '"On it"' in content["message"]

    def test_sla_breach_hours(self):
        content = format_notification_message("sla_breach", {"ticket_number": "TKT-7", "hours_overdue": 2.6})
        assert content["subject"] == "🚨 SLA BREACH: Ticket #TKT-7 Overdue"
        assert "Overdue By: 3 hours" in content["message"]

    def test_sla_warning_under_an_hour(self):
        content = format_notification_message("sla_warning", {"ticket_number": "TKT-7", "hours_until_due": 0})
        assert "Time Remaining: Less than 1 hour" in content["message"]

    def test_unknown_type_without_ticket_number(self):
        content = format_notification_message("something_else", {})
        assert content["subject"] == "Ticket Notification: A ticket"

    def test_priority_by_type(self):
        assert get_notification_priority("sla_breach") == "critical"
        assert get_notification_priority("ticket_assigned") == "high"
        assert get_notification_priority("ticket_closed") == "low"


class TestChannelRules:
    """Tests for preference-driven channel selection."""

    def test_defaults(self):
        preferences = merge_preferences(None)
        assert preferences == DEFAULT_PREFERENCES
        assert should_send_notification("ticket_created", "email", preferences)
        assert not should_send_notification("ticket_created", "sms", preferences)

    def test_channel_needs_address(self):
        preferences = merge_preferences({"sms": True})
        assert not should_send_notification("ticket_created", "sms", preferences)
        preferences["sms_number"] = "+15550100"
        assert should_send_notification("ticket_created", "sms", preferences)
        assert get_recipient("sms", preferences) == "+15550100"

    def test_muted_event(self):
        preferences = merge_preferences({"notify_on_ticket_comment": False})
        assert not should_send_notification("ticket_comment", "email", preferences)
        assert should_send_notification("ticket_closed", "email", preferences)

    def test_email_recipient(self):
        assert get_recipient("email", {}, "a@b.test") == "a@b.test"
        assert get_recipient("email", {}, "") is None


# =============================================================================
# Delivery through ticket events
# =============================================================================


class TestInAppNotifications:
    """Tests for in-app notifications and delivery logs."""

    def _ticket_with_staff_comment(self, client, headers, client_user, staff):
        ticket = client.post(
            "/tickets", json={"title": "Broken contact form"}, headers=headers(client_user)
        ).json()
        client.post(f"/tickets/{ticket['id']}/comments", json={"content": "Looking now"}, headers=headers(staff))
        return ticket

    def test_creator_notified_of_staff_comment(self, client, headers, client_user, staff):
        ticket = self._ticket_with_staff_comment(client, headers, client_user, staff)

        notifications = client.get("/notifications", headers=headers(client_user)).json()
        assert [n["type"] for n in notifications] == ["ticket_comment"]
        assert notifications[0]["link"] == f"/tickets/{ticket['id']}"
        assert client.get("/notifications/unread-count", headers=headers(client_user)).json() == {"unread_count": 1}

    def test_actor_not_notified_of_own_ticket(self, client, headers, client_user):
        client.post("/tickets", json={"title": "Just a question"}, headers=headers(client_user))
        assert client.get("/notifications", headers=headers(client_user)).json() == []

    def test_mark_all_read(self, client, headers, client_user, staff):
        self._ticket_with_staff_comment(client, headers, client_user, staff)
        client.post("/notifications/read-all", headers=headers(client_user))
        assert client.get("/notifications/unread-count", headers=headers(client_user)).json()["unread_count"] == 0

    def test_notifications_are_private(self, client, headers, client_user, other_client, staff):
        self._ticket_with_staff_comment(client, headers, client_user, staff)
        notification_id = client.get("/notifications", headers=headers(client_user)).json()[0]["id"]
        response = client.post(f"/notifications/{notification_id}/read", headers=headers(other_client))
        assert response.status_code == 404

    def test_failed_email_is_logged(self, client, headers, db, client_user, staff):
        ticket = self._ticket_with_staff_comment(client, headers, client_user, staff)
        log = (
            db.query(NotificationLog)
            .filter(
                NotificationLog.ticket_id == ticket["id"],
                NotificationLog.channel == "email",
                NotificationLog.recipient == client_user.email,
            )
            .first()
        )
        assert log is not None
        assert log.status == "failed"


class TestPreferencesAPI:
    """Tests for notification preference endpoints."""

    def test_update_merges_with_defaults(self, client, headers, client_user):
        response = client.put(
            "/notifications/preferences", json={"email": False, "notify_on_sla_warning": False}, headers=headers(client_user)
        )
        assert response.status_code == 200
        preferences = client.get("/notifications/preferences", headers=headers(client_user)).json()
        assert preferences["email"] is False
        assert preferences["notify_on_sla_warning"] is False
        assert preferences["in_app"] is True

    def test_slack_url_must_be_slack(self, client, headers, client_user):
        response = client.put(
            "/notifications/preferences",
            json={"slack": True, "slack_webhook_url": "https://example.com/hook"},
            headers=headers(client_user),
        )
        assert response.status_code == 400
