import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crud import create_account, delete_account, get_or_404, list_accounts, update_account
from database import get_db
from models import Hospital, Patient, Role
from schemas import AccountCreate, AccountOut, AccountUpdate, CurrentUser, HospitalDetail, HospitalPatientLink
from security import authenticate, authorize, ensure_self_or_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hospitals", tags=["hospitals"])


@router.get("/")
def list_hospitals(page: int = 1, limit: int = 10, search: str = None, db: Session = Depends(get_db)):
    return list_accounts(db, Hospital, page, limit, search, AccountOut.model_validate)


@router.get("/{hospital_id}")
def get_hospital(hospital_id: str, db: Session = Depends(get_db)):
    return HospitalDetail.model_validate(get_or_404(db, Hospital, hospital_id, "Hospital"))


@router.post("/", status_code=201)
def create_hospital(data: AccountCreate, db: Session = Depends(get_db)):
    return AccountOut.model_validate(create_account(db, Hospital, data))


@router.put("/{hospital_id}")
def update_hospital(
    hospital_id: str,
    data: AccountUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, hospital_id)
    hospital = get_or_404(db, Hospital, hospital_id, "Hospital")
    return AccountOut.model_validate(update_account(db, hospital, data))


@router.delete("/{hospital_id}")
def delete_hospital(hospital_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, hospital_id)
    delete_account(db, get_or_404(db, Hospital, hospital_id, "Hospital"))
    return {"message": "Hospital deleted successfully"}


# ---------------- PATIENTS ---------------- #

@router.post("/assign-patient")
def assign_patient(
    data: HospitalPatientLink,
    user: CurrentUser = Depends(authorize(Role.HOSPITAL, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, data.hospital_id)
    hospital = get_or_404(db, Hospital, data.hospital_id, "Hospital")
    patient = get_or_404(db, Patient, data.patient_id, "Patient")

    if patient not in hospital.patients:
        hospital.patients.append(patient)
        db.commit()
        logger.info("Patient %s assigned to hospital %s", patient.id, hospital.id)

    db.refresh(hospital)
    return HospitalDetail.model_validate(hospital)


@router.post("/remove-patient")
def remove_patient(
    data: HospitalPatientLink,
    user: CurrentUser = Depends(authorize(Role.HOSPITAL, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, data.hospital_id)
    hospital = get_or_404(db, Hospital, data.hospital_id, "Hospital")
    patient = get_or_404(db, Patient, data.patient_id, "Patient")

    if patient in hospital.patients:
        hospital.patients.remove(patient)
        db.commit()
        logger.info("Patient %s removed from hospital %s", patient.id, hospital.id)

    db.refresh(hospital)
    return HospitalDetail.model_validate(hospital)
