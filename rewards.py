import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from models import (
    Account,
    Referral,
    ReferralStatus,
    RewardSetting,
    RewardTransaction,
    ServiceType,
    TransactionType,
)

logger = logging.getLogger(__name__)

DEFAULT_REFERRAL_POINTS = 2
REFERRAL_POINTS_KEY = "referral_points"

SERVICE_POINT_SETTINGS = {
    ServiceType.DOCTOR_CONSULT: ("doctor_consult_referral_points", 25),
    ServiceType.MEDSTORE_PURCHASE: ("medstore_purchase_referral_points", 15),
    ServiceType.CHECKUP_SERVICE: ("checkup_service_referral_points", 20),
}
FALLBACK_SERVICE_SETTING = ("service_referral_points", 20)

DEFAULT_SETTINGS = {
    REFERRAL_POINTS_KEY: (DEFAULT_REFERRAL_POINTS, "Points awarded to both parties for a completed referral"),
    "doctor_consult_referral_points": (25, "Points awarded for doctor consult service referrals"),
    "medstore_purchase_referral_points": (15, "Points awarded for medstore purchase service referrals"),
    "checkup_service_referral_points": (20, "Points awarded for checkup service service referrals"),
}


# --------------------------------------------------
# ERRORS
# --------------------------------------------------

class RewardError(Exception):
    pass


class UserNotFound(RewardError):
    pass


class SelfReferral(RewardError):
    pass


class ReferralNotFound(RewardError):
    pass


class ReferralAlreadyCompleted(RewardError):
    pass


class ReferralExists(RewardError):
    def __init__(self, referral):
        super().__init__("A referral between these users already exists")
        self.referral = referral


def service_label(service_type):
    return service_type.value.lower().replace("_", " ", 1) if service_type else "general"


# --------------------------------------------------
# SETTINGS
# --------------------------------------------------

def get_setting_value(db, key, default):
    setting = db.query(RewardSetting).filter(RewardSetting.key == key).first()
    return setting.value if setting else default


def ensure_setting(db, key, default, description, updated_by="system"):
    """Returns the setting row for ``key``, creating it with ``default`` if absent."""
    setting = db.query(RewardSetting).filter(RewardSetting.key == key).first()
    if setting:
        return setting

    try:
        with db.begin_nested():
            setting = RewardSetting(key=key, value=default, description=description, updated_by=updated_by)
            db.add(setting)
        logger.info("Created reward setting %s=%s", key, default)
        return setting
    except IntegrityError:
        # another request created the key first
        return db.query(RewardSetting).filter(RewardSetting.key == key).one()


def upsert_setting(db, key, value, description=None, updated_by="system"):
    setting = db.query(RewardSetting).filter(RewardSetting.key == key).first()
    if setting is None:
        setting = RewardSetting(key=key, value=value, description=description, updated_by=updated_by)
        db.add(setting)
    else:
        setting.value = value
        setting.updated_by = updated_by
        if description is not None:
            setting.description = description
    db.commit()
    db.refresh(setting)
    return setting


def seed_default_settings(db):
    for key, (value, description) in DEFAULT_SETTINGS.items():
        ensure_setting(db, key, value, description)
    db.commit()


def service_referral_points(db, service_type):
    key, default = SERVICE_POINT_SETTINGS.get(service_type, FALLBACK_SERVICE_SETTING)
    description = f"Points awarded for {service_label(service_type)} service referrals"
    return ensure_setting(db, key, default, description).value


# --------------------------------------------------
# LEDGER
# --------------------------------------------------

def award_points(db, user_id, user_role, points, transaction_type, description, referral_id=None, commit=True):
    """Writes one ledger row and bumps the matching counter by the same amount."""
    updated = db.query(Account).filter(
        Account.id == user_id,
        Account.role == user_role
    ).update(
        {Account.reward_points: Account.reward_points + points},
        synchronize_session="fetch"
    )
    if not updated:
        raise UserNotFound(f"{user_role.value} {user_id} not found")

    transaction = RewardTransaction(
        user_id=user_id,
        user_role=user_role,
        points=points,
        transaction_type=transaction_type,
        description=description,
        referral_id=referral_id,
    )
    db.add(transaction)

    if commit:
        db.commit()
        db.refresh(transaction)
    else:
        db.flush()

    logger.info("Awarded %s points to %s %s (%s)", points, user_role.value, user_id, transaction_type.value)
    return transaction


def find_account(db, user_id, role):
    return db.query(Account).filter(Account.id == user_id, Account.role == role).first()


def create_referral(
    db,
    referrer_id,
    referrer_role,
    referred_id,
    referred_role,
    service_type=None,
    patient_id=None,
    notes=None
):
    if referrer_id == referred_id:
        raise SelfReferral("You cannot refer yourself")

    if find_account(db, referred_id, referred_role) is None:
        raise UserNotFound("Referred user not found")

    is_service = service_type is not None
    if not is_service:
        existing = db.query(Referral).filter(
            Referral.referrer_id == referrer_id,
            Referral.referred_id == referred_id,
            Referral.is_service_referral.is_(False)
        ).first()
        if existing:
            raise ReferralExists(existing)

    points = 0 if is_service else get_setting_value(db, REFERRAL_POINTS_KEY, DEFAULT_REFERRAL_POINTS)

    referral = Referral(
        referrer_id=referrer_id,
        referrer_role=referrer_role,
        referred_id=referred_id,
        referred_role=referred_role,
        status=ReferralStatus.PENDING,
        points_awarded=points,
        is_service_referral=is_service,
        service_type=service_type,
        patient_id=patient_id,
        notes=notes,
    )
    db.add(referral)
    db.commit()
    db.refresh(referral)

    logger.info("Referral %s created by %s %s", referral.id, referrer_role.value, referrer_id)
    return referral


def complete_referral(db, referral_id):
    """Moves a referral from PENDING to COMPLETED and pays out, all in one transaction."""
    referral = db.get(Referral, referral_id)
    if referral is None:
        raise ReferralNotFound("Referral not found")
    if referral.status != ReferralStatus.PENDING:
        raise ReferralAlreadyCompleted(f"Referral is already {referral.status.value.lower()}")

    try:
        points = referral.points_awarded
        if referral.is_service_referral:
            points = service_referral_points(db, referral.service_type)

        claimed = db.query(Referral).filter(
            Referral.id == referral_id,
            Referral.status == ReferralStatus.PENDING
        ).update(
            {
                Referral.status: ReferralStatus.COMPLETED,
                Referral.completed_at: datetime.utcnow(),
                Referral.points_awarded: points,
            },
            synchronize_session=False
        )
        if not claimed:
            raise ReferralAlreadyCompleted("Referral is already completed")

        if referral.is_service_referral:
            award_points(
                db,
                referral.referrer_id,
                referral.referrer_role,
                points,
                TransactionType.REFERRAL_REWARD,
                f"Service referral reward for referring a patient to {service_label(referral.service_type)}",
                referral_id=referral.id,
                commit=False,
            )
        else:
            award_points(
                db,
                referral.referrer_id,
                referral.referrer_role,
                points,
                TransactionType.REFERRAL_REWARD,
                f"Referral reward for referring a {referral.referred_role.value.lower()}",
                referral_id=referral.id,
                commit=False,
            )
            award_points(
                db,
                referral.referred_id,
                referral.referred_role,
                points,
                TransactionType.REFERRAL_REWARD,
                f"Reward for being referred by a {referral.referrer_role.value.lower()}",
                referral_id=referral.id,
                commit=False,
            )

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(referral)
    logger.info("Referral %s completed, %s points each", referral.id, points)
    return referral
