import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from crud import get_or_404
from database import get_db
from models import Account, Patient, Referral, RewardSetting, RewardTransaction, Role, ServiceType
from rewards import (
    ReferralAlreadyCompleted,
    ReferralExists,
    ReferralNotFound,
    SelfReferral,
    UserNotFound,
    complete_referral,
    create_referral,
    upsert_setting,
)
from schemas import (
    CurrentUser,
    ReferralCreate,
    ReferralOut,
    RewardSettingOut,
    RewardSettingUpdate,
    RewardTransactionOut,
    ServiceReferralCreate,
)
from security import authenticate, authorize_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rewards", tags=["rewards"])

SERVICE_ROLES = {
    ServiceType.DOCTOR_CONSULT: Role.DOCTOR,
    ServiceType.MEDSTORE_PURCHASE: Role.MEDSTORE,
    ServiceType.CHECKUP_SERVICE: Role.CHECKUP_CENTER,
}


def _role_or_400(value):
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid role: {value}") from None


def _create(db, user, **kwargs):
    try:
        return create_referral(db, user.user_id, user.role, **kwargs)
    except SelfReferral as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except UserNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ReferralExists as e:
        raise HTTPException(
            status_code=409,
            detail={
                "error": str(e),
                "referralId": e.referral.id,
                "status": e.referral.status.value,
            }
        ) from None


# ---------------- REFERRALS ---------------- #

@router.post("/referrals", status_code=201)
def create_standard_referral(
    data: ReferralCreate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    referral = _create(
        db,
        user,
        referred_id=data.referred_id,
        referred_role=_role_or_400(data.referred_role),
    )
    return {"message": "Referral created successfully", "referral": ReferralOut.model_validate(referral)}


@router.post("/service-referrals", status_code=201)
def create_service_referral(
    data: ServiceReferralCreate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    referred_role = _role_or_400(data.referred_role)
    if SERVICE_ROLES[data.service_type] != referred_role:
        raise HTTPException(
            status_code=400,
            detail=f"Service type {data.service_type.value} requires a {SERVICE_ROLES[data.service_type].value} referral"
        )

    get_or_404(db, Patient, data.patient_id, "Patient")

    referral = _create(
        db,
        user,
        referred_id=data.referred_id,
        referred_role=referred_role,
        service_type=data.service_type,
        patient_id=data.patient_id,
        notes=data.notes,
    )
    return {"message": "Service referral created successfully", "referral": ReferralOut.model_validate(referral)}


@router.put("/referrals/{referral_id}/complete")
def complete(referral_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    referral = get_or_404(db, Referral, referral_id, "Referral")
    if user.role != Role.ADMIN and referral.referred_id != user.user_id:
        raise HTTPException(status_code=403, detail="Only the referred user or an admin can complete a referral")

    try:
        referral = complete_referral(db, referral_id)
    except ReferralNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ReferralAlreadyCompleted as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except UserNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from None

    return {"message": "Referral completed successfully", "referral": ReferralOut.model_validate(referral)}


@router.get("/referrals")
def get_referrals(
    type: str = Query("given", pattern="^(given|received)$"),
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    column = Referral.referrer_id if type == "given" else Referral.referred_id
    referrals = db.query(Referral).filter(column == user.user_id).order_by(Referral.created_at.desc()).all()
    return {
        "referrals": [ReferralOut.model_validate(r) for r in referrals],
        "totalCount": len(referrals),
    }


# ---------------- POINTS ---------------- #

@router.get("/points")
def get_points(user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    account = get_or_404(db, Account, user.user_id, "User")
    return {"rewardPoints": account.reward_points}


@router.get("/history")
def get_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    query = db.query(RewardTransaction).filter(RewardTransaction.user_id == user.user_id)
    total = query.count()
    transactions = query.order_by(RewardTransaction.created_at.desc()).offset(offset).limit(limit).all()
    return {
        "transactions": [RewardTransactionOut.model_validate(t) for t in transactions],
        "totalCount": total,
    }


# ---------------- SETTINGS ---------------- #

@router.get("/settings")
def get_settings(user: CurrentUser = Depends(authorize_admin), db: Session = Depends(get_db)):
    settings = db.query(RewardSetting).order_by(RewardSetting.key).all()
    return {"settings": [RewardSettingOut.model_validate(s) for s in settings]}


@router.put("/settings")
def update_settings(
    data: RewardSettingUpdate,
    user: CurrentUser = Depends(authorize_admin),
    db: Session = Depends(get_db)
):
    if data.value < 0:
        raise HTTPException(status_code=400, detail="Value must be a non-negative number")

    setting = upsert_setting(db, data.key, data.value, data.description, updated_by=user.user_id)
    logger.info("Reward setting %s set to %s by %s", setting.key, setting.value, user.user_id)
    return {"message": "Setting updated successfully", "setting": RewardSettingOut.model_validate(setting)}
