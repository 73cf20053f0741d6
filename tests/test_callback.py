"""
Tests for the callback scheduling rules and the slots endpoint.
"""

from __future__ import annotations

from datetime import date

import pytest

from callback import (
    add_months,
    bookable_days,
    is_bookable_day,
    last_bookable_day,
    slot_error,
    time_slots,
)

# A Wednesday
TODAY = date(2025, 3, 12)


class TestSlots:
    """Tests for the fixed time grid."""

    def test_time_slots_cover_working_hours(self):
        slots = time_slots()
        assert len(slots) == 36
        assert slots[0] == "09:00"
        assert slots[-1] == "17:45"
        assert "12:15" in slots
        assert "18:00" not in slots


class TestDays:
    """Tests for which days can be booked."""

    def test_add_months_clamps_month_end(self):
        assert add_months(date(2025, 12, 31), 2) == date(2026, 2, 28)
        assert add_months(date(2024, 12, 31), 2) == date(2025, 2, 28)
        assert add_months(date(2025, 1, 15), 2) == date(2025, 3, 15)

    def test_last_bookable_day(self):
        assert last_bookable_day(TODAY) == date(2025, 5, 12)

    def test_weekends_are_not_bookable(self):
        assert not is_bookable_day(date(2025, 3, 15), TODAY)
        assert not is_bookable_day(date(2025, 3, 16), TODAY)
        assert is_bookable_day(date(2025, 3, 17), TODAY)

    def test_past_and_far_future(self):
        assert not is_bookable_day(date(2025, 3, 11), TODAY)
        assert is_bookable_day(TODAY, TODAY)
        assert not is_bookable_day(date(2025, 5, 13), TODAY)

    def test_bookable_days_skip_weekend(self):
        days = bookable_days(5, TODAY)
        assert days == [
            date(2025, 3, 12), date(2025, 3, 13), date(2025, 3, 14),
            date(2025, 3, 17), date(2025, 3, 18),
        ]


class TestSlotError:
    """Tests for the Swedish validation messages."""

    @pytest.mark.parametrize("day, time, message", [
        ("", "10:00", "Välj ett datum"),
        ("2025-03-13", "", "Välj en tid"),
        ("13/03/2025", "10:00", "Ogiltigt datum"),
        ("2025-03-10", "10:00", "Datumet har redan passerat"),
        ("2025-03-15", "10:00", "Vi ringer inte tillbaka på helger"),
        ("2025-06-02", "10:00", "Datumet ligger för långt fram"),
        ("2025-03-13", "08:45", "Välj en tid mellan 09:00 och 17:45"),
        ("2025-03-13", "10:10", "Välj en tid mellan 09:00 och 17:45"),
    ])
    def test_rejected(self, day, time, message):
        assert slot_error(day, time, TODAY) == message

    def test_accepted(self):
        assert slot_error("2025-03-13", "17:45", TODAY) is None


class TestSlotsEndpoint:
    """Tests for GET /api/callback/slots."""

    def test_returns_grid_and_days(self, client):
        response = client.get("/api/callback/slots", params={"days": 3})
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["days"]) == 3
        assert len(data["time_slots"]) == 36
        assert data["hours"][0] == "09"
        assert data["minutes"] == ["00", "15", "30", "45"]
        for day in data["days"]:
            assert date.fromisoformat(day).weekday() < 5

    def test_days_out_of_range(self, client):
        response = client.get("/api/callback/slots", params={"days": 0})
        assert response.status_code == 400
