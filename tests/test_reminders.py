from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from reminders import (
    ReminderError,
    check_confirmation_window,
    compliance_points,
    default_reminder_times,
    is_dose_day,
    is_on_time,
    is_valid_reminder_time,
    normalize_reminder_time,
    upcoming_reminders,
)


def make_schedule(start, days, times_per_day=2, gap=0, reminder_times=()):
    item = SimpleNamespace(
        id="item-1",
        medicine_name="Metformin",
        dosage="500mg",
        times_per_day=times_per_day,
        gap_between_days=gap,
        reminder_times=list(reminder_times),
    )
    return SimpleNamespace(id="schedule-1", start_date=start, number_of_days=days, items=[item])


@pytest.mark.parametrize("value, expected", [
    ("08:00", True),
    ("8:05", True),
    ("23:59", True),
    ("24:00", False),
    ("12:60", False),
    ("noon", False),
    ("", False),
])
def test_is_valid_reminder_time(value, expected):
    assert is_valid_reminder_time(value) is expected


def test_normalize_reminder_time_pads_hours():
    assert normalize_reminder_time("8:05") == "08:05"


@pytest.mark.parametrize("times_per_day, expected", [
    (1, ["06:00"]),
    (2, ["06:00", "14:00"]),
    (3, ["06:00", "11:00", "16:00"]),
    (4, ["06:00", "10:00", "14:00", "18:00"]),
    (0, []),
])
def test_default_reminder_times(times_per_day, expected):
    assert default_reminder_times(times_per_day) == expected


def test_is_dose_day_respects_gap():
    start = datetime(2030, 1, 1, 9, 0)
    assert is_dose_day(start, datetime(2030, 1, 2), 0)
    assert not is_dose_day(start, datetime(2030, 1, 2), 1)
    assert is_dose_day(start, datetime(2030, 1, 3), 1)
    assert not is_dose_day(start, datetime(2029, 12, 31), 0)


def test_upcoming_reminders_skip_past_doses():
    now = datetime(2030, 1, 1, 7, 0)
    schedule = make_schedule(datetime(2030, 1, 1), days=3)

    reminders = upcoming_reminders([schedule], now=now)

    assert [r["scheduledFor"] for r in reminders] == [
        datetime(2030, 1, 1, 14, 0),
        datetime(2030, 1, 2, 6, 0),
        datetime(2030, 1, 2, 14, 0),
    ]
    assert reminders[0]["medicineName"] == "Metformin"
    assert reminders[0]["pointsAwarded"] == 5


def test_upcoming_reminders_honour_gap_and_end():
    now = datetime(2030, 1, 1, 7, 0)
    every_other_day = make_schedule(datetime(2030, 1, 1), days=3, gap=1)
    single_day = make_schedule(datetime(2030, 1, 1), days=1)

    assert [r["scheduledFor"] for r in upcoming_reminders([every_other_day], now=now)] == [
        datetime(2030, 1, 1, 14, 0),
    ]
    assert [r["scheduledFor"] for r in upcoming_reminders([single_day], now=now)] == [
        datetime(2030, 1, 1, 14, 0),
    ]


def test_upcoming_reminders_prefer_active_custom_times():
    now = datetime(2030, 1, 1, 7, 0)
    custom = [
        SimpleNamespace(reminder_time="21:00", is_active=True),
        SimpleNamespace(reminder_time="09:00", is_active=True),
        SimpleNamespace(reminder_time="12:00", is_active=False),
    ]
    schedule = make_schedule(datetime(2030, 1, 1), days=1, reminder_times=custom)

    assert [r["reminderTime"] for r in upcoming_reminders([schedule], now=now)] == ["09:00", "21:00"]


def test_upcoming_reminders_ignore_inactive_schedules():
    now = datetime(2030, 1, 10, 7, 0)
    finished = make_schedule(datetime(2030, 1, 1), days=3)
    assert upcoming_reminders([finished], now=now) == []


def test_on_time_window():
    assert is_on_time(datetime(2030, 1, 1, 8, 25), "08:00")
    assert is_on_time(datetime(2030, 1, 1, 7, 30), "08:00")
    assert not is_on_time(datetime(2030, 1, 1, 8, 31), "08:00")
    assert compliance_points(True) == 5
    assert compliance_points(False) == 1


def test_confirmation_window():
    now = datetime(2030, 1, 1, 12, 0)
    check_confirmation_window(now - timedelta(minutes=10), now=now)
    with pytest.raises(ReminderError):
        check_confirmation_window(now - timedelta(hours=2), now=now)
