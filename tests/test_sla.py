"""
Tests for SLA windows, SLA status evaluation and the SLA monitor.
"""

import asyncio
from datetime import datetime, timedelta

from portal.domain.tickets.priority import (
    calculate_sla_dates,
    format_response_time,
    get_sla_hours,
    is_urgent_priority,
)
from portal.domain.tickets.sla import (
    format_duration,
    get_combined_sla_status,
    get_first_response_sla_status,
    get_resolution_sla_status,
)
from portal.models import Notification
from portal.models_ticket import Ticket
from portal.services.sla_monitor import check_ticket_sla, run_sla_monitor

T0 = datetime(2024, 3, 4, 9, 0, 0)


# =============================================================================
# SLA windows
# =============================================================================


class TestSlaWindows:
    """Tests for per-priority SLA hours."""

    def test_standard_windows(self):
        assert get_sla_hours("critical") == {"first_response_hours": 1, "resolution_hours": 4}
        assert get_sla_hours("low") == {"first_response_hours": 24, "resolution_hours": 72}

    def test_unknown_priority_uses_medium(self):
        assert get_sla_hours(None) == get_sla_hours("medium")

    def test_priority_client_windows_halved(self):
        assert get_sla_hours("medium", True) == {"first_response_hours": 4, "resolution_hours": 24}

    def test_priority_client_floors(self):
        """Halving never drops below 1h first response and 2h resolution."""
        assert get_sla_hours("critical", True) == {"first_response_hours": 1, "resolution_hours": 2}

    def test_due_dates_from_created_at(self):
        first_due, resolution_due = calculate_sla_dates("high", T0)
        assert first_due == T0 + timedelta(hours=4)
        assert resolution_due == T0 + timedelta(hours=24)

    def test_urgent_priorities(self):
        assert is_urgent_priority("critical")
        assert is_urgent_priority("high")
        assert not is_urgent_priority("medium")
        assert not is_urgent_priority(None)


class TestFormatResponseTime:
    """Tests for the human-readable SLA window."""

    def test_minutes(self):
        assert format_response_time(0.5) == "30 minutes"

    def test_single_hour(self):
        assert format_response_time(1) == "1 hour"

    def test_hours(self):
        assert format_response_time(4) == "4 hours"

    def test_single_day(self):
        assert format_response_time(24) == "1 day"

    def test_days(self):
        assert format_response_time(72) == "3 days"
        assert format_response_time(36) == "1.5 days"


# =============================================================================
# Status evaluation
# =============================================================================


class TestSlaStatus:
    """Tests for breach / critical / warning / upcoming / on-track classification."""

    def test_first_response_breach(self):
        status = get_first_response_sla_status(T0, T0 + timedelta(hours=8), None, T0 + timedelta(hours=9))
        assert status["status"] == "breach"
        assert status["hours_overdue"] == 1
        assert status["description"] == "First response overdue by 1 hour"

    def test_first_response_critical_under_an_hour(self):
        status = get_first_response_sla_status(
            T0, T0 + timedelta(hours=8), None, T0 + timedelta(hours=7, minutes=30)
        )
        assert status["status"] == "critical"
        assert status["time_remaining"] == "30 minutes"
        assert status["percent_elapsed"] is None
        assert status["description"] == "First response due in 30 minutes"

    def test_first_response_completed(self):
        status = get_first_response_sla_status(T0, T0 + timedelta(hours=8), T0 + timedelta(hours=1))
        assert status["status"] == "completed"

    def test_resolution_warning(self):
        """At least 75% of the window elapsed."""
        status = get_resolution_sla_status(T0, T0 + timedelta(hours=48), None, "open", T0 + timedelta(hours=40))
        assert status["status"] == "warning"

    def test_resolution_upcoming(self):
        status = get_resolution_sla_status(T0, T0 + timedelta(hours=48), None, "open", T0 + timedelta(hours=30))
        assert status["status"] == "upcoming"

    def test_resolution_on_track(self):
        status = get_resolution_sla_status(T0, T0 + timedelta(hours=48), None, "open", T0 + timedelta(hours=10))
        assert status["status"] == "on-track"
        assert status["description"] == "Resolution due in 1d 14h"
        assert status["time_remaining"] == "1d 14h"
        assert status["percent_elapsed"] == 20.8
        assert status["hours_overdue"] is None

    def test_resolved_ticket_completed(self):
        status = get_resolution_sla_status(T0, T0 + timedelta(hours=48), None, "resolved", T0 + timedelta(hours=60))
        assert status["status"] == "completed"

    def test_no_deadline_is_on_track(self):
        status = get_resolution_sla_status(T0, None, None, "open", T0)
        assert status["status"] == "on-track"
        assert status["label"] == "No SLA"

    def test_combined_takes_worst_clock(self):
        now = T0 + timedelta(hours=9)
        combined = get_combined_sla_status(
            T0, T0 + timedelta(hours=8), None, T0 + timedelta(hours=48), None, "open", now
        )
        assert combined["status"] == "breach"
        assert combined["description"].startswith("First response")

    def test_every_status_has_the_same_keys(self):
        """Breach, critical, completed and no-deadline results share one shape."""
        results = [
            get_first_response_sla_status(T0, T0 + timedelta(hours=8), None, T0 + timedelta(hours=9)),
            get_first_response_sla_status(T0, T0 + timedelta(hours=8), None, T0 + timedelta(hours=7, minutes=30)),
            get_first_response_sla_status(T0, T0 + timedelta(hours=8), T0 + timedelta(hours=1)),
            get_resolution_sla_status(T0, None, None, "open", T0),
        ]
        keys = {"status", "label", "description", "time_remaining", "hours_overdue", "percent_elapsed"}
        assert all(set(result) == keys for result in results)


class TestFormatDuration:
    def test_minutes(self):
        assert format_duration(0.5) == "30 minutes"

    def test_single_hour(self):
        assert format_duration(1) == "1 hour"

    def test_days_and_hours(self):
        assert format_duration(25) == "1d 1h"

    def test_whole_days(self):
        assert format_duration(48) == "2 days"


# =============================================================================
# Monitor
# =============================================================================


def _ticket(db, organization, creator, created_at, priority="medium", **kwargs) -> Ticket:
    first_due, resolution_due = calculate_sla_dates(priority, created_at)
    ticket = Ticket(
        organization_id=organization.id,
        created_by=creator.id,
        title="Checkout page returns an error",
        priority=priority,
        status="open",
        first_response_due_at=first_due,
        sla_due_at=resolution_due,
        created_at=created_at,
        **kwargs,
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket


class TestSlaMonitor:
    """Tests for the periodic SLA scan."""

    def test_check_reports_breach(self, db, client_org, client_user):
        now = datetime.utcnow()
        ticket = _ticket(db, client_org, client_user, now - timedelta(hours=10))
        finding = check_ticket_sla(ticket, now)
        assert finding == {"type": "sla_breach", "hours_overdue": 2.0}

    def test_check_reports_warning(self, db, client_org, client_user):
        """Under a quarter of the window left triggers a warning."""
        now = datetime.utcnow()
        ticket = _ticket(db, client_org, client_user, now - timedelta(hours=7))
        finding = check_ticket_sla(ticket, now)
        assert finding["type"] == "sla_warning"
        assert finding["hours_until_due"] == 1.0

    def test_check_on_track(self, db, client_org, client_user):
        now = datetime.utcnow()
        ticket = _ticket(db, client_org, client_user, now - timedelta(hours=1))
        assert check_ticket_sla(ticket, now) is None

    def test_monitor_notifies_once_per_window(self, db, client_org, client_user):
        """A second run inside the dedupe window sends nothing new."""
        _ticket(db, client_org, client_user, datetime.utcnow() - timedelta(hours=10))

        first = asyncio.run(run_sla_monitor(db))
        assert first["breaches_sent"] == 1
        notifications = db.query(Notification).filter(Notification.user_id == client_user.id).all()
        assert [n.type for n in notifications] == ["sla_breach"]

        second = asyncio.run(run_sla_monitor(db))
        assert second["breaches_sent"] == 0

    def test_monitor_skips_closed_tickets(self, db, client_org, client_user):
        ticket = _ticket(db, client_org, client_user, datetime.utcnow() - timedelta(hours=100))
        ticket.status = "closed"
        db.commit()
        result = asyncio.run(run_sla_monitor(db))
        assert result == {"checked": 0, "warnings_sent": 0, "breaches_sent": 0}
