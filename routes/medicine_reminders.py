import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from models import MedicineReminderTime, MedicineSchedule, Role, ScheduledMedicineItem, TransactionType
from reminders import (
    compliance_points,
    is_on_time,
    is_schedule_active,
    is_valid_reminder_time,
    normalize_reminder_time,
    schedule_end,
    upcoming_reminders,
)
from rewards import award_points
from schemas import CurrentUser, MedicineScheduleOut, MedicineTaken, ReminderTimeOut, ReminderTimesSet, ReminderTimeUpdate
from security import authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/medicine-reminders", tags=["medicine-reminders"])


def _owned_item(db, item_id, patient_id):
    item = db.get(ScheduledMedicineItem, item_id)
    if item is None or item.schedule.patient_id != patient_id:
        raise HTTPException(status_code=404, detail="Medicine item not found")
    return item


def _owned_reminder(db, reminder_id, patient_id):
    reminder = db.get(MedicineReminderTime, reminder_id)
    if reminder is None or reminder.patient_id != patient_id:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


def _validate_time(value):
    if not is_valid_reminder_time(value):
        raise HTTPException(status_code=400, detail=f"Invalid reminder time: {value}. Use HH:MM format")
    return normalize_reminder_time(value)


def active_schedules(db, patient_id, now=None):
    now = now or datetime.utcnow()
    schedules = db.query(MedicineSchedule).filter(
        MedicineSchedule.patient_id == patient_id,
        MedicineSchedule.start_date <= now
    ).order_by(MedicineSchedule.start_date.desc()).all()
    return [s for s in schedules if is_schedule_active(s, now)]


@router.get("/patient")
def get_patient_reminders(user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    schedules = active_schedules(db, user.user_id)
    return {
        "schedules": [MedicineScheduleOut.model_validate(s) for s in schedules],
        "upcomingReminders": upcoming_reminders(schedules),
    }


@router.get("/medicine-item/{item_id}")
def get_item_reminders(item_id: str, user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    item = _owned_item(db, item_id, user.user_id)
    return [ReminderTimeOut.model_validate(r) for r in item.reminder_times]


@router.post("/set")
def set_reminder_times(
    data: ReminderTimesSet,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    item = _owned_item(db, data.medicine_item_id, user.user_id)
    times = [_validate_time(value) for value in data.reminder_times]

    if len(times) != item.times_per_day:
        raise HTTPException(
            status_code=400,
            detail=f"Number of reminder times ({len(times)}) must match times per day ({item.times_per_day})"
        )

    item.reminder_times = [
        MedicineReminderTime(reminder_time=value, patient_id=user.user_id)
        for value in times
    ]
    db.commit()
    db.refresh(item)

    logger.info("Reminder times for item %s set to %s", item.id, times)
    return {
        "message": "Reminder times set successfully",
        "reminderTimes": [ReminderTimeOut.model_validate(r) for r in item.reminder_times],
    }


@router.put("/{reminder_id}")
def update_reminder_time(
    reminder_id: str,
    data: ReminderTimeUpdate,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    reminder = _owned_reminder(db, reminder_id, user.user_id)

    if data.reminder_time is not None:
        reminder.reminder_time = _validate_time(data.reminder_time)
    if data.is_active is not None:
        reminder.is_active = data.is_active

    db.commit()
    db.refresh(reminder)
    return ReminderTimeOut.model_validate(reminder)


@router.post("/{reminder_id}/taken")
def mark_medicine_taken(
    reminder_id: str,
    data: MedicineTaken = None,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    reminder = _owned_reminder(db, reminder_id, user.user_id)
    item = reminder.medicine_item
    schedule = item.schedule

    now = datetime.utcnow()
    if now >= schedule_end(schedule):
        raise HTTPException(status_code=400, detail="This medicine schedule has ended")

    taken_at = (data.taken_at if data else None) or now
    if not schedule.start_date <= taken_at < schedule_end(schedule):
        raise HTTPException(status_code=400, detail="Taken time is outside the medicine schedule")

    on_time = is_on_time(taken_at, reminder.reminder_time)
    points = compliance_points(on_time)

    reminder.last_taken_at = taken_at
    reminder.total_times_taken += 1
    if on_time:
        reminder.consecutive_days_taken += 1

    award_points(
        db,
        user.user_id,
        Role.PATIENT,
        points,
        TransactionType.MEDICINE_COMPLIANCE,
        f"Took {item.medicine_name} {'on time' if on_time else 'late'} ({reminder.reminder_time})",
        commit=False,
    )
    db.commit()
    db.refresh(reminder)

    return {
        "message": "Medicine marked as taken",
        "pointsAwarded": points,
        "isOnTime": on_time,
        "reminder": ReminderTimeOut.model_validate(reminder),
    }
