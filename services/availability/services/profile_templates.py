"""
Starter availability profile for new users.
"""

from datetime import date
from typing import Any, Dict, List

from services.availability.settings import Settings

LUNCH_BREAK = {"start": "12:00", "end": "13:00", "title": "Lunch Break", "type": "lunch"}


def _day(start: str, end: str, breaks: List[Dict[str, str]]) -> Dict[str, Any]:
    return {"enabled": True, "start": start, "end": end, "breaks": breaks}


def default_profile_template(settings: Settings, today: date) -> Dict[str, Any]:
    """
    Profile fields (without tenant/user) for standard business hours.

    Monday to Thursday run from the configured working-day window, Friday
    ends at 16:00, weekends are off. Every weekday has a lunch break and
    Monday has an extra afternoon break.
    """
    start = settings.default_working_hours_start
    end = settings.default_working_hours_end
    off = {"enabled": False, "start": "00:00", "end": "00:00", "breaks": []}

    return {
        "name": "Default Working Hours",
        "description": "Standard business hours availability",
        "time_zone": settings.default_time_zone,
        "is_default": True,
        "working_hours": {
            "0": dict(off),
            "1": _day(
                start,
                end,
                [
                    dict(LUNCH_BREAK),
                    {
                        "start": "15:00",
                        "end": "15:15",
                        "title": "Afternoon Break",
                        "type": "break",
                    },
                ],
            ),
            "2": _day(start, end, [dict(LUNCH_BREAK)]),
            "3": _day(start, end, [dict(LUNCH_BREAK)]),
            "4": _day(start, end, [dict(LUNCH_BREAK)]),
            "5": _day(start, "16:00", [dict(LUNCH_BREAK)]),
            "6": dict(off),
        },
        "availability": {
            "patterns": [
                {
                    "type": "recurring",
                    "start_date": today.isoformat(),
                    "start_time": start,
                    "end_time": end,
                    "days_of_week": [1, 2, 3, 4, 5],
                    "frequency": "weekly",
                    "title": "Regular Business Hours",
                    "description": "Standard availability Monday through Friday",
                    "max_bookings": 8,
                    "min_advance_booking": 2,
                    "max_advance_booking": 30,
                    "buffer_time": {"before": 15, "after": 15},
                }
            ],
            "exceptions": [],
            "overrides": [],
        },
        "preferences": {
            "meeting_types": [
                {
                    "type": "consultation",
                    "duration": {"min": 30, "max": 120, "default": 60},
                    "buffer_time": {"before": 15, "after": 15},
                    "max_per_day": 4,
                    "allow_back_to_back": False,
                    "preferred_times": {"start": "10:00", "end": "16:00"},
                },
                {
                    "type": "review",
                    "duration": {"min": 15, "max": 60, "default": 30},
                    "buffer_time": {"before": 5, "after": 10},
                    "max_per_day": 6,
                    "allow_back_to_back": True,
                },
            ],
            "notification_settings": {
                "new_booking_request": True,
                "booking_confirmation": True,
                "booking_cancellation": True,
                "daily_summary": True,
                "weekly_report": False,
                "channels": ["email"],
                "lead_time": 15,
            },
            "booking_settings": {
                "auto_accept": False,
                "require_approval": True,
                "allow_rescheduling": True,
                "allow_cancellation": True,
                "minimum_notice": 24,
                "maximum_advance_booking": 60,
                "buffer_between_meetings": 15,
            },
        },
        "status": "active",
    }
