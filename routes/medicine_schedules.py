import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from crud import get_or_404
from database import get_db
from models import MedicineSchedule, Patient, Role, ScheduledMedicineItem, TransactionType
from reminders import ON_TIME_POINTS, ReminderError, check_confirmation_window, schedule_end
from rewards import award_points
from schemas import CurrentUser, MedicineConfirm, MedicineScheduleCreate, MedicineScheduleOut, MedicineScheduleUpdate
from security import authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/medicine-schedules", tags=["medicine-schedules"])

ITEM_FIELDS = ("medicine_name", "dosage", "times_per_day", "gap_between_days", "notes")


def _schedules_for_patient(db, patient_id):
    return db.query(MedicineSchedule).filter(
        MedicineSchedule.patient_id == patient_id
    ).order_by(MedicineSchedule.start_date.desc()).all()


def _schedules_by_scheduler(db, scheduler_id):
    return db.query(MedicineSchedule).filter(
        MedicineSchedule.scheduler_id == scheduler_id
    ).order_by(MedicineSchedule.created_at.desc()).all()


def _ensure_can_manage(schedule, user):
    if user.role != Role.ADMIN and schedule.scheduler_id != user.user_id:
        raise HTTPException(status_code=403, detail="Only the prescriber or an admin can change this schedule")


def _serialize(schedules):
    return [MedicineScheduleOut.model_validate(s) for s in schedules]


@router.post("/", status_code=201)
def create_medicine_schedule(
    data: MedicineScheduleCreate,
    user: CurrentUser = Depends(authorize(Role.DOCTOR, Role.MEDSTORE)),
    db: Session = Depends(get_db)
):
    get_or_404(db, Patient, data.patient_id, "Patient")

    schedule = MedicineSchedule(
        patient_id=data.patient_id,
        start_date=data.start_date,
        number_of_days=data.number_of_days,
        notes=data.notes,
        scheduler_type=user.role,
        scheduler_id=user.user_id,
        items=[
            ScheduledMedicineItem(**item.model_dump(include=set(ITEM_FIELDS)))
            for item in data.items
        ],
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)

    logger.info("Medicine schedule %s created for patient %s by %s", schedule.id, schedule.patient_id, user.user_id)
    return MedicineScheduleOut.model_validate(schedule)


@router.get("/patient")
def get_my_schedules(user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    return _serialize(_schedules_for_patient(db, user.user_id))


@router.get("/patient/{patient_id}")
def get_patient_schedules(
    patient_id: str,
    user: CurrentUser = Depends(authorize(Role.PATIENT, Role.ADMIN, Role.DOCTOR, Role.MEDSTORE)),
    db: Session = Depends(get_db)
):
    if user.role == Role.PATIENT and user.user_id != patient_id:
        raise HTTPException(status_code=403, detail="You can only view your own medicine schedules")
    get_or_404(db, Patient, patient_id, "Patient")
    return _serialize(_schedules_for_patient(db, patient_id))


@router.get("/doctor/mine")
def get_doctor_schedules(user: CurrentUser = Depends(authorize(Role.DOCTOR)), db: Session = Depends(get_db)):
    return _serialize(_schedules_by_scheduler(db, user.user_id))


@router.get("/medstore/mine")
def get_medstore_schedules(user: CurrentUser = Depends(authorize(Role.MEDSTORE)), db: Session = Depends(get_db)):
    return _serialize(_schedules_by_scheduler(db, user.user_id))


@router.post("/confirm")
def confirm_medicine(
    data: MedicineConfirm,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    item = db.get(ScheduledMedicineItem, data.medicine_item_id)
    if item is None or item.schedule.patient_id != user.user_id:
        raise HTTPException(status_code=404, detail="Medicine item not found")

    if datetime.utcnow() >= schedule_end(item.schedule):
        raise HTTPException(status_code=400, detail="This medicine schedule has already ended")

    try:
        check_confirmation_window(data.taken_at)
    except ReminderError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    transaction = award_points(
        db,
        user.user_id,
        Role.PATIENT,
        ON_TIME_POINTS,
        TransactionType.MEDICINE_COMPLIANCE,
        f"Took {item.medicine_name} on time",
    )
    return {
        "message": "Medicine intake confirmed",
        "pointsAwarded": transaction.points,
        "medicineItemId": item.id,
    }


@router.get("/{schedule_id}")
def get_medicine_schedule(
    schedule_id: str,
    user: CurrentUser = Depends(authorize(Role.PATIENT, Role.ADMIN, Role.DOCTOR, Role.MEDSTORE)),
    db: Session = Depends(get_db)
):
    schedule = get_or_404(db, MedicineSchedule, schedule_id, "Medicine schedule")
    if user.role == Role.PATIENT and schedule.patient_id != user.user_id:
        raise HTTPException(status_code=403, detail="You can only view your own medicine schedules")
    return MedicineScheduleOut.model_validate(schedule)


@router.put("/{schedule_id}")
def update_medicine_schedule(
    schedule_id: str,
    data: MedicineScheduleUpdate,
    user: CurrentUser = Depends(authorize(Role.DOCTOR, Role.MEDSTORE, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    schedule = get_or_404(db, MedicineSchedule, schedule_id, "Medicine schedule")
    _ensure_can_manage(schedule, user)

    if data.start_date is not None:
        schedule.start_date = data.start_date
    if data.number_of_days is not None:
        schedule.number_of_days = data.number_of_days
    if data.notes is not None:
        schedule.notes = data.notes

    if data.items is not None:
        existing = {item.id: item for item in schedule.items}
        keep = []
        for incoming in data.items:
            fields = incoming.model_dump(include=set(ITEM_FIELDS))
            if incoming.id:
                item = existing.get(incoming.id)
                if item is None:
                    raise HTTPException(status_code=400, detail=f"Medicine item {incoming.id} is not part of this schedule")
                for field, value in fields.items():
                    setattr(item, field, value)
            else:
                item = ScheduledMedicineItem(**fields)
            keep.append(item)
        schedule.items = keep

    db.commit()
    db.refresh(schedule)
    logger.info("Medicine schedule %s updated by %s", schedule.id, user.user_id)
    return MedicineScheduleOut.model_validate(schedule)


@router.delete("/{schedule_id}", status_code=204)
def delete_medicine_schedule(
    schedule_id: str,
    user: CurrentUser = Depends(authorize(Role.DOCTOR, Role.MEDSTORE, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    schedule = get_or_404(db, MedicineSchedule, schedule_id, "Medicine schedule")
    _ensure_can_manage(schedule, user)

    db.delete(schedule)
    db.commit()
    logger.info("Medicine schedule %s deleted by %s", schedule_id, user.user_id)
    return Response(status_code=204)
