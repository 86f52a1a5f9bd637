import re
from datetime import datetime, timedelta

REMINDER_TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

FIRST_DOSE_HOUR = 6
WAKING_HOURS = 16
GRACE_MINUTES = 30
ON_TIME_POINTS = 5
LATE_POINTS = 1
UPCOMING_LIMIT = 10


class ReminderError(Exception):
    pass


def is_valid_reminder_time(value):
    return bool(value) and REMINDER_TIME_RE.match(value) is not None


def normalize_reminder_time(value):
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{minutes}"


def start_of_day(moment):
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def schedule_end(schedule):
    return schedule.start_date + timedelta(days=schedule.number_of_days)


def is_schedule_active(schedule, now=None):
    now = now or datetime.utcnow()
    return schedule.start_date <= now < schedule_end(schedule)


def is_dose_day(start_date, day, gap_between_days):
    days_since_start = (start_of_day(day) - start_of_day(start_date)).days
    if days_since_start < 0:
        return False
    return gap_between_days == 0 or days_since_start % (gap_between_days + 1) == 0


def default_reminder_times(times_per_day):
    """Spreads doses evenly over a 16 hour day starting at 06:00."""
    if times_per_day <= 0:
        return []
    hour_gap = WAKING_HOURS // times_per_day
    return [f"{FIRST_DOSE_HOUR + i * hour_gap:02d}:00" for i in range(times_per_day)]


def item_clock_times(item):
    custom = [r.reminder_time for r in getattr(item, "reminder_times", []) if r.is_active]
    return sorted(custom) if custom else default_reminder_times(item.times_per_day)


def at_clock_time(day, value):
    hours, minutes = (int(part) for part in value.split(":"))
    return start_of_day(day).replace(hour=hours, minute=minutes)


def upcoming_reminders(schedules, now=None, days=2, limit=UPCOMING_LIMIT):
    now = now or datetime.utcnow()
    today = start_of_day(now)
    reminders = []

    for schedule in schedules:
        if not is_schedule_active(schedule, now):
            continue
        for offset in range(days):
            day = today + timedelta(days=offset)
            for item in schedule.items:
                if not is_dose_day(schedule.start_date, day, item.gap_between_days):
                    continue
                for clock in item_clock_times(item):
                    moment = at_clock_time(day, clock)
                    if moment <= now or moment >= schedule_end(schedule):
                        continue
                    reminders.append({
                        "medicineItemId": item.id,
                        "scheduleId": schedule.id,
                        "medicineName": item.medicine_name,
                        "dosage": item.dosage,
                        "reminderTime": clock,
                        "scheduledFor": moment,
                        "pointsAwarded": ON_TIME_POINTS,
                    })

    reminders.sort(key=lambda r: r["scheduledFor"])
    return reminders[:limit]


def is_on_time(taken_at, reminder_time, grace_minutes=GRACE_MINUTES):
    scheduled = at_clock_time(taken_at, reminder_time)
    return abs(taken_at - scheduled) <= timedelta(minutes=grace_minutes)


def compliance_points(on_time):
    return ON_TIME_POINTS if on_time else LATE_POINTS


def check_confirmation_window(taken_at, now=None, grace_minutes=GRACE_MINUTES):
    now = now or datetime.utcnow()
    if abs(now - taken_at) > timedelta(minutes=grace_minutes):
        raise ReminderError(
            f"Medicine can only be confirmed within {grace_minutes} minutes of taking it"
        )
