from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crud import create_account, delete_account, get_or_404, list_accounts, update_account
from database import get_db
from models import Patient, Role
from schemas import AccountCreate, AccountOut, AccountUpdate, CurrentUser, PatientDetail
from security import authenticate, authorize, ensure_self_or_admin

router = APIRouter(prefix="/api/patients", tags=["patients"])

PROVIDER_ROLES = (Role.ADMIN, Role.DOCTOR, Role.HOSPITAL, Role.CLINIC, Role.CHECKUP_CENTER, Role.MEDSTORE)


# ---------------- OWN PROFILE ---------------- #

@router.get("/profile")
def get_profile(user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    return PatientDetail.model_validate(get_or_404(db, Patient, user.user_id, "Patient"))


@router.put("/update")
def update_profile(
    data: AccountUpdate,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    patient = get_or_404(db, Patient, user.user_id, "Patient")
    return PatientDetail.model_validate(update_account(db, patient, data))


# ---------------- CRUD ---------------- #

@router.get("/")
def list_patients(
    page: int = 1,
    limit: int = 10,
    search: str = None,
    user: CurrentUser = Depends(authorize(*PROVIDER_ROLES)),
    db: Session = Depends(get_db)
):
    return list_accounts(db, Patient, page, limit, search, AccountOut.model_validate)


@router.get("/{patient_id}")
def get_patient(patient_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    if user.role == Role.PATIENT:
        ensure_self_or_admin(user, patient_id)
    return PatientDetail.model_validate(get_or_404(db, Patient, patient_id, "Patient"))


@router.post("/", status_code=201)
def create_patient(data: AccountCreate, db: Session = Depends(get_db)):
    return AccountOut.model_validate(create_account(db, Patient, data))


@router.put("/{patient_id}")
def update_patient(
    patient_id: str,
    data: AccountUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, patient_id)
    patient = get_or_404(db, Patient, patient_id, "Patient")
    return AccountOut.model_validate(update_account(db, patient, data))


@router.delete("/{patient_id}")
def delete_patient(patient_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, patient_id)
    delete_account(db, get_or_404(db, Patient, patient_id, "Patient"))
    return {"message": "Patient deleted successfully"}
