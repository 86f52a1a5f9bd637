import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crud import create_account, delete_account, get_or_404, list_accounts, update_account
from database import get_db
from models import Clinic, Doctor
from schemas import AccountCreate, AccountOut, AccountUpdate, ClinicDetail, ClinicDoctorLink, CurrentUser
from security import authenticate, ensure_self_or_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clinics", tags=["clinics"])


@router.get("/")
def list_clinics(page: int = 1, limit: int = 10, search: str = None, db: Session = Depends(get_db)):
    return list_accounts(db, Clinic, page, limit, search, AccountOut.model_validate)


@router.get("/{clinic_id}")
def get_clinic(clinic_id: str, db: Session = Depends(get_db)):
    return ClinicDetail.model_validate(get_or_404(db, Clinic, clinic_id, "Clinic"))


@router.post("/", status_code=201)
def create_clinic(data: AccountCreate, db: Session = Depends(get_db)):
    return AccountOut.model_validate(create_account(db, Clinic, data))


@router.put("/{clinic_id}")
def update_clinic(
    clinic_id: str,
    data: AccountUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, clinic_id)
    clinic = get_or_404(db, Clinic, clinic_id, "Clinic")
    return AccountOut.model_validate(update_account(db, clinic, data))


@router.delete("/{clinic_id}")
def delete_clinic(clinic_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, clinic_id)
    delete_account(db, get_or_404(db, Clinic, clinic_id, "Clinic"))
    return {"message": "Clinic deleted successfully"}


# ---------------- DOCTOR ---------------- #

@router.post("/{clinic_id}/assign-doctor")
def assign_doctor(
    clinic_id: str,
    data: ClinicDoctorLink,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, clinic_id)
    clinic = get_or_404(db, Clinic, clinic_id, "Clinic")
    doctor = get_or_404(db, Doctor, data.doctor_id, "Doctor")

    if doctor.clinic_id and doctor.clinic_id != clinic.id:
        raise HTTPException(status_code=400, detail="Doctor is already assigned to another clinic")

    if clinic.doctor is not None and clinic.doctor.id != doctor.id:
        clinic.doctor.clinic_id = None
        db.flush()

    doctor.clinic_id = clinic.id
    db.commit()
    db.refresh(clinic)
    logger.info("Doctor %s assigned to clinic %s", doctor.id, clinic.id)
    return ClinicDetail.model_validate(clinic)


@router.post("/{clinic_id}/remove-doctor")
def remove_doctor(clinic_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, clinic_id)
    clinic = get_or_404(db, Clinic, clinic_id, "Clinic")

    if clinic.doctor is None:
        raise HTTPException(status_code=400, detail="No doctor is assigned to this clinic")

    clinic.doctor.clinic_id = None
    db.commit()
    db.refresh(clinic)
    logger.info("Doctor removed from clinic %s", clinic.id)
    return ClinicDetail.model_validate(clinic)
