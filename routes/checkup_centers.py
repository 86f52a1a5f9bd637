import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crud import create_account, delete_account, get_or_404, list_accounts, update_account
from database import get_db
from models import CheckupCenter, Patient, Role
from schemas import (
    AccountCreate,
    AccountOut,
    AccountSummary,
    AccountUpdate,
    CheckupCenterDetail,
    CheckupCenterPatientLink,
    CurrentUser,
    NextVisitUpdate,
)
from security import authenticate, authorize, ensure_self_or_admin
from visits import upsert_checkup_center_next_visit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkup-centers", tags=["checkup-centers"])


@router.post("/", status_code=201)
def create_checkup_center(data: AccountCreate, db: Session = Depends(get_db)):
    return AccountOut.model_validate(create_account(db, CheckupCenter, data))


@router.get("/")
def list_checkup_centers(page: int = 1, limit: int = 10, search: str = None, db: Session = Depends(get_db)):
    return list_accounts(db, CheckupCenter, page, limit, search, AccountOut.model_validate)


@router.get("/{checkup_center_id}")
def get_checkup_center(checkup_center_id: str, db: Session = Depends(get_db)):
    center = get_or_404(db, CheckupCenter, checkup_center_id, "Checkup center")
    return CheckupCenterDetail.model_validate(center)


@router.put("/{checkup_center_id}")
def update_checkup_center(
    checkup_center_id: str,
    data: AccountUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, checkup_center_id)
    center = get_or_404(db, CheckupCenter, checkup_center_id, "Checkup center")
    return AccountOut.model_validate(update_account(db, center, data))


@router.delete("/{checkup_center_id}")
def delete_checkup_center(
    checkup_center_id: str,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, checkup_center_id)
    delete_account(db, get_or_404(db, CheckupCenter, checkup_center_id, "Checkup center"))
    return {"message": "Checkup center deleted successfully"}


# ---------------- PATIENTS ---------------- #

@router.post("/assign-patient")
def assign_patient(
    data: CheckupCenterPatientLink,
    user: CurrentUser = Depends(authorize(Role.CHECKUP_CENTER, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, data.checkup_center_id)
    center = get_or_404(db, CheckupCenter, data.checkup_center_id, "Checkup center")
    patient = get_or_404(db, Patient, data.patient_id, "Patient")

    if patient not in center.patients:
        center.patients.append(patient)
        db.commit()
        logger.info("Patient %s assigned to checkup center %s", patient.id, center.id)

    db.refresh(center)
    return CheckupCenterDetail.model_validate(center)


@router.post("/remove-patient")
def remove_patient(
    data: CheckupCenterPatientLink,
    user: CurrentUser = Depends(authorize(Role.CHECKUP_CENTER, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, data.checkup_center_id)
    center = get_or_404(db, CheckupCenter, data.checkup_center_id, "Checkup center")
    patient = get_or_404(db, Patient, data.patient_id, "Patient")

    if patient in center.patients:
        center.patients.remove(patient)
        db.commit()
        logger.info("Patient %s removed from checkup center %s", patient.id, center.id)

    db.refresh(center)
    return CheckupCenterDetail.model_validate(center)


@router.patch("/{checkup_center_id}/patients/{patient_id}/next-visit")
def update_patient_next_visit(
    checkup_center_id: str,
    patient_id: str,
    data: NextVisitUpdate,
    user: CurrentUser = Depends(authorize(Role.CHECKUP_CENTER, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, checkup_center_id)
    center = get_or_404(db, CheckupCenter, checkup_center_id, "Checkup center")

    patient = next((p for p in center.patients if p.id == patient_id), None)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found or not assigned to this checkup center")

    visit = upsert_checkup_center_next_visit(db, center.id, patient.id, data.next_visit_date)
    return {
        "message": "Next visit updated successfully",
        "patient": AccountSummary.model_validate(patient),
        "nextVisit": visit.next_visit,
    }
