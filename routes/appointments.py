import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crud import get_or_404
from database import get_db
from models import CheckupCenter, CheckupCenterNextVisit, Doctor, DoctorNextVisit, Patient, Role
from schemas import AccountSummary, CheckupAppointmentCreate, CurrentUser, DoctorAppointmentCreate, DoctorSummary
from security import authorize
from visits import upsert_checkup_center_next_visit, upsert_doctor_next_visit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["appointments"])


def doctor_visit_entry(visit, with_patient=False):
    entry = {
        "id": visit.id,
        "type": "doctor",
        "nextVisit": visit.next_visit,
        "createdAt": visit.created_at,
        "doctor": DoctorSummary.model_validate(visit.doctor),
    }
    if with_patient:
        entry["patient"] = AccountSummary.model_validate(visit.patient)
    return entry


def checkup_visit_entry(visit, with_patient=False):
    entry = {
        "id": visit.id,
        "type": "checkup",
        "nextVisit": visit.next_visit,
        "createdAt": visit.created_at,
        "checkupCenter": AccountSummary.model_validate(visit.checkup_center),
    }
    if with_patient:
        entry["patient"] = AccountSummary.model_validate(visit.patient)
    return entry


def patient_visits(db, patient_id):
    doctor_visits = db.query(DoctorNextVisit).filter(DoctorNextVisit.patient_id == patient_id).all()
    checkup_visits = db.query(CheckupCenterNextVisit).filter(CheckupCenterNextVisit.patient_id == patient_id).all()
    visits = [doctor_visit_entry(v) for v in doctor_visits] + [checkup_visit_entry(v) for v in checkup_visits]
    visits.sort(key=lambda v: v["nextVisit"])
    return visits


def _future_or_400(moment):
    if moment <= datetime.utcnow():
        raise HTTPException(status_code=400, detail="Appointment date must be in the future")


# ---------------- PATIENT ---------------- #

@router.get("/")
def get_appointments(user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    now = datetime.utcnow()
    visits = patient_visits(db, user.user_id)
    upcoming = [v for v in visits if v["nextVisit"] >= now]
    past = [v for v in visits if v["nextVisit"] < now]
    past.reverse()
    return {"upcoming": upcoming, "past": past, "total": len(visits)}


@router.get("/next-visits")
def get_next_visits(user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    now = datetime.utcnow()
    return [v for v in patient_visits(db, user.user_id) if v["nextVisit"] >= now]


@router.post("/doctor", status_code=201)
def book_doctor_appointment(
    data: DoctorAppointmentCreate,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    _future_or_400(data.next_visit)
    doctor = get_or_404(db, Doctor, data.doctor_id, "Doctor")
    patient = get_or_404(db, Patient, user.user_id, "Patient")

    taken = db.query(DoctorNextVisit).filter(
        DoctorNextVisit.doctor_id == doctor.id,
        DoctorNextVisit.next_visit == data.next_visit,
        DoctorNextVisit.patient_id != patient.id
    ).first()
    if taken:
        raise HTTPException(status_code=409, detail="This time slot is already booked")

    if patient not in doctor.patients:
        doctor.patients.append(patient)
        db.commit()

    visit = upsert_doctor_next_visit(db, doctor.id, patient.id, data.next_visit)
    logger.info("Patient %s booked doctor %s for %s", patient.id, doctor.id, data.next_visit)
    return {"message": "Appointment booked successfully", "appointment": doctor_visit_entry(visit)}


@router.post("/checkup", status_code=201)
def book_checkup_appointment(
    data: CheckupAppointmentCreate,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    _future_or_400(data.next_visit)
    center = get_or_404(db, CheckupCenter, data.checkup_center_id, "Checkup center")
    patient = get_or_404(db, Patient, user.user_id, "Patient")

    taken = db.query(CheckupCenterNextVisit).filter(
        CheckupCenterNextVisit.checkup_center_id == center.id,
        CheckupCenterNextVisit.next_visit == data.next_visit,
        CheckupCenterNextVisit.patient_id != patient.id
    ).first()
    if taken:
        raise HTTPException(status_code=409, detail="This time slot is already booked")

    if patient not in center.patients:
        center.patients.append(patient)
        db.commit()

    visit = upsert_checkup_center_next_visit(db, center.id, patient.id, data.next_visit)
    logger.info("Patient %s booked checkup center %s for %s", patient.id, center.id, data.next_visit)
    return {"message": "Appointment booked successfully", "appointment": checkup_visit_entry(visit)}


@router.delete("/doctor/{visit_id}")
def cancel_doctor_appointment(
    visit_id: str,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    visit = get_or_404(db, DoctorNextVisit, visit_id, "Appointment")
    if visit.patient_id != user.user_id:
        raise HTTPException(status_code=403, detail="You can only cancel your own appointments")

    db.delete(visit)
    db.commit()
    return {"message": "Appointment cancelled successfully"}


@router.delete("/checkup/{visit_id}")
def cancel_checkup_appointment(
    visit_id: str,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    visit = get_or_404(db, CheckupCenterNextVisit, visit_id, "Appointment")
    if visit.patient_id != user.user_id:
        raise HTTPException(status_code=403, detail="You can only cancel your own appointments")

    db.delete(visit)
    db.commit()
    return {"message": "Appointment cancelled successfully"}


# ---------------- PROVIDERS ---------------- #

@router.get("/doctor/mine")
def get_doctor_appointments(user: CurrentUser = Depends(authorize(Role.DOCTOR)), db: Session = Depends(get_db)):
    visits = db.query(DoctorNextVisit).filter(
        DoctorNextVisit.doctor_id == user.user_id
    ).order_by(DoctorNextVisit.next_visit).all()
    return [doctor_visit_entry(v, with_patient=True) for v in visits]


@router.get("/checkup-center/mine")
def get_checkup_center_appointments(
    user: CurrentUser = Depends(authorize(Role.CHECKUP_CENTER)),
    db: Session = Depends(get_db)
):
    visits = db.query(CheckupCenterNextVisit).filter(
        CheckupCenterNextVisit.checkup_center_id == user.user_id
    ).order_by(CheckupCenterNextVisit.next_visit).all()
    return [checkup_visit_entry(v, with_patient=True) for v in visits]
