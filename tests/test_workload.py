"""
Tests for staff availability, workload snapshots and completion estimates.
"""

import asyncio
from datetime import date, datetime
from types import SimpleNamespace

from portal.domain.integrations.calendar.sync import normalize_google_event
from portal.domain.workload.availability import (
    analyze_workload,
    find_next_available_slot,
    get_staff_availability,
)
from portal.domain.workload.estimator import (
    build_client_message,
    calculate_completion_date,
    calculate_confidence,
    calculate_factors,
    estimate_hours,
    hours_ahead_in_queue,
)
from portal.models_staff import CalendarBlock

MONDAY = date(2026, 10, 19)


def block(start, end, all_day=False):
    return SimpleNamespace(start_time=start, end_time=end, is_all_day=all_day)


def schedule(day, hours=8.0, working=True):
    return SimpleNamespace(day_of_week=day, is_working_day=working, available_hours=hours)


def ticket(priority):
    return SimpleNamespace(priority=priority)


# =============================================================================
# Availability
# =============================================================================


class TestAvailability:
    """Tests for per-day availability windows."""

    def test_default_week_without_schedule(self):
        days = get_staff_availability([], [], MONDAY, 7)
        assert [d["net_hours"] for d in days] == [8.0, 8.0, 8.0, 8.0, 8.0, 0.0, 0.0]
        assert days[5]["is_working_day"] is False

    def test_configured_schedule_closes_unlisted_days(self):
        days = get_staff_availability([schedule(0, hours=6)], [], MONDAY, 2)
        assert days[0]["available_hours"] == 6.0
        assert days[1]["is_working_day"] is False
        assert days[1]["available_hours"] == 0.0

    def test_meeting_reduces_net_hours(self):
        meeting = block(datetime(2026, 10, 19, 10), datetime(2026, 10, 19, 12))
        monday = get_staff_availability([], [meeting], MONDAY, 1)[0]
        assert monday["blocked_hours"] == 2.0
        assert monday["net_hours"] == 6.0

    def test_block_spanning_midnight_split_across_days(self):
        late = block(datetime(2026, 10, 19, 23), datetime(2026, 10, 20, 1))
        monday, tuesday = get_staff_availability([], [late], MONDAY, 2)
        assert monday["blocked_hours"] == 1.0
        assert tuesday["blocked_hours"] == 1.0

    def test_all_day_block_blocks_whole_day(self):
        leave = block(datetime(2026, 10, 19), datetime(2026, 10, 19, 23, 59), all_day=True)
        monday = get_staff_availability([], [leave], MONDAY, 1)[0]
        assert monday["net_hours"] == 0.0

    def test_synced_all_day_event_blocks_only_its_day(self):
        event = normalize_google_event(
            {"id": "evt-1", "start": {"date": "2026-10-19"}, "end": {"date": "2026-10-20"}}
        )
        leave = block(event["start_time"], event["end_time"], all_day=event["is_all_day"])
        monday, tuesday = get_staff_availability([], [leave], MONDAY, 2)
        assert monday["net_hours"] == 0.0
        assert tuesday["blocked_hours"] == 0.0
        assert tuesday["net_hours"] == 8.0
        assert find_next_available_slot([], [leave], MONDAY) == date(2026, 10, 20)

    def test_blocked_hours_capped_at_available(self):
        saturday = date(2026, 10, 24)
        errand = block(datetime(2026, 10, 24, 9), datetime(2026, 10, 24, 11))
        day = get_staff_availability([], [errand], saturday, 1)[0]
        assert day["blocked_hours"] == 0.0

        long_meeting = block(datetime(2026, 10, 19, 8), datetime(2026, 10, 19, 20))
        monday = get_staff_availability([], [long_meeting], MONDAY, 1)[0]
        assert monday["blocked_hours"] == 8.0
        assert monday["net_hours"] == 0.0

    def test_next_slot_skips_leave_and_weekend(self):
        leave = block(datetime(2026, 10, 19), datetime(2026, 10, 19, 23, 59), all_day=True)
        assert find_next_available_slot([], [leave], MONDAY) == date(2026, 10, 20)
        assert find_next_available_slot([], [], date(2026, 10, 24)) == date(2026, 10, 26)


# =============================================================================
# Workload snapshot
# =============================================================================


class TestAnalyzeWorkload:
    """Tests for the workload snapshot."""

    def test_queue_and_utilization(self):
        tickets = [ticket("high"), ticket("critical"), ticket("medium"), ticket("urgent")]
        result = analyze_workload(7, [], [], tickets, 2, MONDAY)

        assert result["staff_id"] == 7
        assert result["estimated_hours_queued"] == 10
        assert result["available_hours_week"] == 40.0
        assert result["utilization_percent"] == 25
        assert result["recommended_capacity"] == 75
        assert result["hours_by_priority"] == {"critical": 1, "high": 2, "medium": 4, "low": 0}
        assert result["can_take_new_work"] is True

    def test_overloaded_staff_cannot_take_work(self):
        tickets = [ticket("medium")] * 20
        result = analyze_workload(1, [], [], tickets, 0, MONDAY)
        assert result["utilization_percent"] == 100
        assert result["can_take_new_work"] is False

    def test_no_working_days_is_fully_utilized(self):
        closed = [schedule(day, working=False) for day in range(7)]
        result = analyze_workload(1, closed, [], [], 0, MONDAY)
        assert result["utilization_percent"] == 100
        assert result["net_hours_today"] == 0.0


# =============================================================================
# Completion estimates
# =============================================================================


class TestEstimator:
    """Tests for the completion estimate building blocks."""

    def test_factors_for_easy_critical_ticket(self):
        factors = calculate_factors("critical", 1, 40, 0.2)
        names = [f["factor"] for f in factors]
        assert names == ["Critical priority", "Available capacity", "Low complexity"]
        assert all(f["impact"] == "decreases" for f in factors)
        assert factors[2]["weight"] == 0.16

    def test_deep_queue_factor(self):
        factors = calculate_factors("medium", 7, 60, 0.5)
        assert factors == [{
            "factor": "Queue position",
            "impact": "increases",
            "description": "6 tickets ahead in queue",
            "weight": 0.9,
        }]

    def test_hours_ahead_in_queue(self):
        assert hours_ahead_in_queue(1, "high") == 0
        assert hours_ahead_in_queue(3, "low") == 4.0
        assert hours_ahead_in_queue(3, "critical") == 2 * 2 * 0.1

    def test_confidence_levels(self):
        assert calculate_confidence(4, [], 14) == {"level": "high", "percent": 80}
        assert calculate_confidence(10, [], 10) == {"level": "medium", "percent": 60}
        increases = [{"impact": "increases"}, {"impact": "increases"}]
        assert calculate_confidence(20, increases, 5) == {"level": "low", "percent": 30}

    def test_completion_fits_first_day(self):
        availability = get_staff_availability([], [], MONDAY, 14)
        result = calculate_completion_date(4, 0, availability, [], MONDAY)
        assert result["start_date"] == MONDAY
        assert result["completion_date"] == MONDAY

    def test_completion_waits_for_queue(self):
        availability = get_staff_availability([], [], MONDAY, 14)
        result = calculate_completion_date(4, 8, availability, [], MONDAY)
        assert result["completion_date"] == date(2026, 10, 20)

    def test_completion_projects_past_known_availability(self):
        result = calculate_completion_date(4, 0, [], [], MONDAY)
        assert result["completion_date"] == date(2026, 10, 20)

    def test_client_message(self):
        message = build_client_message(date(2026, 10, 21), "high", "critical")
        assert message == (
            "We understand this is urgent and have prioritized it accordingly. "
            "We expect to complete this by Wednesday, October 21."
        )

    def test_estimate_prefers_history(self):
        hours = asyncio.run(estimate_hours("x", None, "billing", "high", [2, 4, 6, 2, 6]))
        assert hours == 3.6

    def test_estimate_falls_back_to_category_then_default(self):
        assert asyncio.run(estimate_hours("x", None, "bug-report", "medium", [1])) == 4.0
        assert asyncio.run(estimate_hours("x", None, None, "medium", [])) == 2.0


# =============================================================================
# API
# =============================================================================


class TestWorkloadAPI:
    """Tests for the workload endpoints."""

    def test_staff_sets_own_schedule(self, client, headers, staff):
        response = client.put(
            f"/workload/staff/{staff.id}/schedule",
            json={"days": [{"day_of_week": 0, "available_hours": 6}, {"day_of_week": 5, "is_working_day": False}]},
            headers=headers(staff),
        )
        assert response.status_code == 200
        days = {d["day_of_week"]: d for d in response.json()}
        assert days[0]["available_hours"] == 6
        assert days[5]["available_hours"] == 0

    def test_cannot_set_someone_elses_schedule(self, client, headers, staff, unassigned_staff):
        response = client.put(
            f"/workload/staff/{staff.id}/schedule",
            json={"days": [{"day_of_week": 0}]},
            headers=headers(unassigned_staff),
        )
        assert response.status_code == 403

    def test_duplicate_weekday_rejected(self, client, headers, staff):
        response = client.put(
            f"/workload/staff/{staff.id}/schedule",
            json={"days": [{"day_of_week": 1}, {"day_of_week": 1}]},
            headers=headers(staff),
        )
        assert response.status_code == 422

    def test_block_reduces_availability(self, client, headers, staff):
        created = client.post(
            "/workload/blocks",
            json={"title": "Workshop", "start_time": "2026-10-19T09:00:00", "end_time": "2026-10-19T12:00:00"},
            headers=headers(staff),
        )
        assert created.status_code == 201
        assert created.json()["source"] == "manual"

        response = client.get(
            f"/workload/staff/{staff.id}/availability",
            params={"start": "2026-10-19", "days": 1},
            headers=headers(staff),
        )
        assert response.json()[0]["net_hours"] == 5.0

    def test_synced_block_is_read_only(self, client, headers, db, staff):
        synced = CalendarBlock(
            staff_id=staff.id,
            start_time=datetime(2026, 10, 19, 9),
            end_time=datetime(2026, 10, 19, 10),
            source="google",
            external_id="evt-1",
        )
        db.add(synced)
        db.commit()
        response = client.delete(f"/workload/blocks/{synced.id}", headers=headers(staff))
        assert response.status_code == 400

    def test_team_view(self, client, headers, super_admin, staff, client_user):
        response = client.get("/workload/team", headers=headers(super_admin))
        assert response.status_code == 200
        assert staff.id in {row["staff_id"] for row in response.json()}
        assert client.get("/workload/team", headers=headers(client_user)).status_code == 403
