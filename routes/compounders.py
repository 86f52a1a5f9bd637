import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crud import create_account, delete_account, get_or_404, list_accounts, update_account
from database import get_db
from models import Clinic, Compounder, Hospital, MedStore, Role
from schemas import (
    AccountCreate,
    AccountUpdate,
    CompounderClinicLink,
    CompounderDetail,
    CompounderHospitalLink,
    CompounderMedStoreLink,
    CompounderOut,
    CompounderUnlink,
    CurrentUser,
)
from security import authenticate, ensure_self_or_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/compounders", tags=["compounders"])


def _ensure_party(user, *account_ids):
    """Links may be changed by the compounder, the provider on the other side, or an admin."""
    if user.role != Role.ADMIN and user.user_id not in account_ids:
        raise HTTPException(status_code=403, detail="Insufficient permissions")


# ---------------- CRUD ---------------- #

@router.get("/")
def list_compounders(
    page: int = 1,
    limit: int = 10,
    search: str = None,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    return list_accounts(db, Compounder, page, limit, search, CompounderOut.model_validate)


@router.get("/{compounder_id}")
def get_compounder(compounder_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    return CompounderDetail.model_validate(get_or_404(db, Compounder, compounder_id, "Compounder"))


@router.post("/", status_code=201)
def create_compounder(data: AccountCreate, db: Session = Depends(get_db)):
    return CompounderOut.model_validate(create_account(db, Compounder, data))


@router.put("/{compounder_id}")
def update_compounder(
    compounder_id: str,
    data: AccountUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, compounder_id)
    compounder = get_or_404(db, Compounder, compounder_id, "Compounder")
    return CompounderOut.model_validate(update_account(db, compounder, data))


@router.delete("/{compounder_id}")
def delete_compounder(compounder_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, compounder_id)
    delete_account(db, get_or_404(db, Compounder, compounder_id, "Compounder"))
    return {"message": "Compounder deleted successfully"}


# ---------------- HOSPITALS ---------------- #

@router.post("/assign-hospital")
def assign_hospital(
    data: CompounderHospitalLink,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    _ensure_party(user, data.compounder_id, data.hospital_id)
    compounder = get_or_404(db, Compounder, data.compounder_id, "Compounder")
    hospital = get_or_404(db, Hospital, data.hospital_id, "Hospital")

    if hospital not in compounder.hospitals:
        compounder.hospitals.append(hospital)
        db.commit()
        logger.info("Compounder %s assigned to hospital %s", compounder.id, hospital.id)

    db.refresh(compounder)
    return CompounderDetail.model_validate(compounder)


# ---------------- CLINIC / MED STORE ---------------- #

@router.post("/assign-clinic")
def assign_clinic(
    data: CompounderClinicLink,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    _ensure_party(user, data.compounder_id, data.clinic_id)
    compounder = get_or_404(db, Compounder, data.compounder_id, "Compounder")
    clinic = get_or_404(db, Clinic, data.clinic_id, "Clinic")

    compounder.clinic_id = clinic.id
    db.commit()
    db.refresh(compounder)
    logger.info("Compounder %s assigned to clinic %s", compounder.id, clinic.id)
    return CompounderDetail.model_validate(compounder)


@router.post("/assign-medstore")
def assign_med_store(
    data: CompounderMedStoreLink,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    _ensure_party(user, data.compounder_id, data.med_store_id)
    compounder = get_or_404(db, Compounder, data.compounder_id, "Compounder")
    med_store = get_or_404(db, MedStore, data.med_store_id, "Med store")

    compounder.med_store_id = med_store.id
    db.commit()
    db.refresh(compounder)
    logger.info("Compounder %s assigned to med store %s", compounder.id, med_store.id)
    return CompounderDetail.model_validate(compounder)


@router.post("/remove-clinic")
def remove_clinic(data: CompounderUnlink, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    compounder = get_or_404(db, Compounder, data.compounder_id, "Compounder")
    _ensure_party(user, compounder.id, compounder.clinic_id)

    if compounder.clinic_id is None:
        raise HTTPException(status_code=400, detail="No clinic is assigned to this compounder")

    compounder.clinic_id = None
    db.commit()
    db.refresh(compounder)
    logger.info("Clinic removed from compounder %s", compounder.id)
    return CompounderDetail.model_validate(compounder)


@router.post("/remove-medstore")
def remove_med_store(data: CompounderUnlink, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    compounder = get_or_404(db, Compounder, data.compounder_id, "Compounder")
    _ensure_party(user, compounder.id, compounder.med_store_id)

    if compounder.med_store_id is None:
        raise HTTPException(status_code=400, detail="No med store is assigned to this compounder")

    compounder.med_store_id = None
    db.commit()
    db.refresh(compounder)
    logger.info("Med store removed from compounder %s", compounder.id)
    return CompounderDetail.model_validate(compounder)
