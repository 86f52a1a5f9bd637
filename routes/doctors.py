import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crud import create_account, delete_account, get_or_404, list_accounts, update_account
from database import get_db
from models import Doctor, Hospital, Patient, Role
from schemas import (
    AccountCreate,
    AccountSummary,
    AccountUpdate,
    CurrentUser,
    DoctorDetail,
    DoctorHospitalLink,
    DoctorOut,
    DoctorPatientLink,
    NextVisitUpdate,
)
from security import authenticate, authorize, ensure_self_or_admin
from visits import upsert_doctor_next_visit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["doctors"])


# ---------------- CRUD ---------------- #

@router.get("/")
def list_doctors(page: int = 1, limit: int = 10, search: str = None, db: Session = Depends(get_db)):
    return list_accounts(db, Doctor, page, limit, search, DoctorOut.model_validate)


@router.get("/{doctor_id}")
def get_doctor(doctor_id: str, db: Session = Depends(get_db)):
    return DoctorDetail.model_validate(get_or_404(db, Doctor, doctor_id, "Doctor"))


@router.post("/", status_code=201)
def create_doctor(data: AccountCreate, db: Session = Depends(get_db)):
    return DoctorOut.model_validate(create_account(db, Doctor, data))


@router.put("/{doctor_id}")
def update_doctor(
    doctor_id: str,
    data: AccountUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, doctor_id)
    doctor = get_or_404(db, Doctor, doctor_id, "Doctor")
    return DoctorOut.model_validate(update_account(db, doctor, data))


@router.delete("/{doctor_id}")
def delete_doctor(doctor_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, doctor_id)
    delete_account(db, get_or_404(db, Doctor, doctor_id, "Doctor"))
    return {"message": "Doctor deleted successfully"}


# ---------------- RELATIONSHIPS ---------------- #

@router.post("/assign")
def assign_doctor_to_hospital(
    data: DoctorHospitalLink,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    if user.role != Role.ADMIN and user.user_id not in (data.doctor_id, data.hospital_id):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    doctor = get_or_404(db, Doctor, data.doctor_id, "Doctor")
    hospital = get_or_404(db, Hospital, data.hospital_id, "Hospital")

    if hospital not in doctor.hospitals:
        doctor.hospitals.append(hospital)
        db.commit()
        logger.info("Doctor %s assigned to hospital %s", doctor.id, hospital.id)

    db.refresh(doctor)
    return DoctorDetail.model_validate(doctor)


@router.post("/assign-patient")
def assign_patient(
    data: DoctorPatientLink,
    user: CurrentUser = Depends(authorize(Role.DOCTOR, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, data.doctor_id)
    doctor = get_or_404(db, Doctor, data.doctor_id, "Doctor")
    patient = get_or_404(db, Patient, data.patient_id, "Patient")

    if patient not in doctor.patients:
        doctor.patients.append(patient)
        db.commit()
        logger.info("Patient %s assigned to doctor %s", patient.id, doctor.id)

    db.refresh(doctor)
    return DoctorDetail.model_validate(doctor)


@router.post("/remove-patient")
def remove_patient(
    data: DoctorPatientLink,
    user: CurrentUser = Depends(authorize(Role.DOCTOR, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, data.doctor_id)
    doctor = get_or_404(db, Doctor, data.doctor_id, "Doctor")
    patient = get_or_404(db, Patient, data.patient_id, "Patient")

    if patient in doctor.patients:
        doctor.patients.remove(patient)
        db.commit()
        logger.info("Patient %s removed from doctor %s", patient.id, doctor.id)

    db.refresh(doctor)
    return DoctorDetail.model_validate(doctor)


@router.patch("/{doctor_id}/patients/{patient_id}/next-visit")
def update_patient_next_visit(
    doctor_id: str,
    patient_id: str,
    data: NextVisitUpdate,
    user: CurrentUser = Depends(authorize(Role.DOCTOR, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, doctor_id)
    doctor = get_or_404(db, Doctor, doctor_id, "Doctor")

    patient = next((p for p in doctor.patients if p.id == patient_id), None)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found or not assigned to this doctor")

    visit = upsert_doctor_next_visit(db, doctor.id, patient.id, data.next_visit_date)
    return {
        "message": "Next visit updated successfully",
        "patient": AccountSummary.model_validate(patient),
        "nextVisit": visit.next_visit,
    }
