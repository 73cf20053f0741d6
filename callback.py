"""
Callback scheduling

The "ring mig" popup lets visitors pick a weekday and a quarter-hour slot
during office hours for a phone call back. This module owns those rules so
the form endpoint and the popup read the same calendar.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Query

from responses import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/callback", tags=["callback"])

FIRST_HOUR = 9
LAST_HOUR = 17
MINUTES = ("00", "15", "30", "45")
BOOKING_MONTHS = 2


def available_hours() -> List[str]:
    return [f"{h:02d}" for h in range(FIRST_HOUR, LAST_HOUR + 1)]


def time_slots() -> List[str]:
    return [f"{h}:{m}" for h in available_hours() for m in MINUTES]


def add_months(day: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    for d in (day.day, 30, 29, 28):
        try:
            return date(year, month, d)
        except ValueError:
            continue
    raise ValueError(f"Cannot add {months} months to {day}")


def last_bookable_day(today: Optional[date] = None) -> date:
    return add_months(today or date.today(), BOOKING_MONTHS)


def is_bookable_day(day: date, today: Optional[date] = None) -> bool:
    today = today or date.today()
    if day < today or day > last_bookable_day(today):
        return False
    return day.weekday() < 5


def bookable_days(count: int = 10, today: Optional[date] = None) -> List[date]:
    """The next ``count`` bookable weekdays starting today."""
    today = today or date.today()
    end = last_bookable_day(today)
    days = []
    day = today
    while day <= end and len(days) < count:
        if day.weekday() < 5:
            days.append(day)
        day += timedelta(days=1)
    return days


def slot_error(preferred_date: Optional[str], preferred_time: Optional[str],
               today: Optional[date] = None) -> Optional[str]:
    """Why a chosen date/time cannot be booked, or None when it can."""
    if not preferred_date:
        return "Välj ett datum"
    if not preferred_time:
        return "Välj en tid"
    try:
        day = datetime.strptime(preferred_date, "%Y-%m-%d").date()
    except ValueError:
        return "Ogiltigt datum"
    today = today or date.today()
    if day < today:
        return "Datumet har redan passerat"
    if day.weekday() >= 5:
        return "Vi ringer inte tillbaka på helger"
    if day > last_bookable_day(today):
        return "Datumet ligger för långt fram"
    if preferred_time not in time_slots():
        return "Välj en tid mellan 09:00 och 17:45"
    return None


@router.get("/slots")
def get_slots(days: int = Query(10, ge=1, le=60)):
    today = date.today()
    return success({
        "days": [d.isoformat() for d in bookable_days(days, today)],
        "hours": available_hours(),
        "minutes": list(MINUTES),
        "time_slots": time_slots(),
        "first_day": today.isoformat(),
        "last_day": last_bookable_day(today).isoformat(),
    })
