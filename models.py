import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base


def new_id():
    return str(uuid.uuid4())


def _enum(cls):
    return Enum(cls, native_enum=False, length=32)


# --------------------------------------------------
# ENUMS
# --------------------------------------------------

class Role(str, enum.Enum):
    DOCTOR = "DOCTOR"
    HOSPITAL = "HOSPITAL"
    CLINIC = "CLINIC"
    MEDSTORE = "MEDSTORE"
    PATIENT = "PATIENT"
    ADMIN = "ADMIN"
    CHECKUP_CENTER = "CHECKUP_CENTER"
    COMPOUNDER = "COMPOUNDER"


class VerificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class DocumentType(str, enum.Enum):
    PRESCRIPTION = "PRESCRIPTION"
    MEDICAL_REPORT = "MEDICAL_REPORT"


class ReferralStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class ServiceType(str, enum.Enum):
    DOCTOR_CONSULT = "DOCTOR_CONSULT"
    MEDSTORE_PURCHASE = "MEDSTORE_PURCHASE"
    CHECKUP_SERVICE = "CHECKUP_SERVICE"


class TransactionType(str, enum.Enum):
    REFERRAL_REWARD = "REFERRAL_REWARD"
    MEDICINE_COMPLIANCE = "MEDICINE_COMPLIANCE"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"
    OTHER = "OTHER"


# --------------------------------------------------
# ASSOCIATION TABLES
# --------------------------------------------------

doctor_patients = Table(
    "doctor_patients",
    Base.metadata,
    Column("doctor_id", String(36), ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="CASCADE"), primary_key=True),
)

hospital_patients = Table(
    "hospital_patients",
    Base.metadata,
    Column("hospital_id", String(36), ForeignKey("hospitals.id", ondelete="CASCADE"), primary_key=True),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="CASCADE"), primary_key=True),
)

checkup_center_patients = Table(
    "checkup_center_patients",
    Base.metadata,
    Column("checkup_center_id", String(36), ForeignKey("checkup_centers.id", ondelete="CASCADE"), primary_key=True),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="CASCADE"), primary_key=True),
)

doctor_hospitals = Table(
    "doctor_hospitals",
    Base.metadata,
    Column("doctor_id", String(36), ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True),
    Column("hospital_id", String(36), ForeignKey("hospitals.id", ondelete="CASCADE"), primary_key=True),
)

compounder_hospitals = Table(
    "compounder_hospitals",
    Base.metadata,
    Column("compounder_id", String(36), ForeignKey("compounders.id", ondelete="CASCADE"), primary_key=True),
    Column("hospital_id", String(36), ForeignKey("hospitals.id", ondelete="CASCADE"), primary_key=True),
)


# --------------------------------------------------
# ACCOUNTS
# --------------------------------------------------

class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(32), index=True, nullable=False)
    role = Column(_enum(Role), nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    phone = Column(String, nullable=False, default="")
    address_line = Column(String, nullable=False, default="")
    city = Column(String, nullable=False, default="")
    state = Column(String, nullable=False, default="")
    pin = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default="India")
    verification_status = Column(
        _enum(VerificationStatus),
        nullable=False,
        default=VerificationStatus.PENDING
    )
    reward_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"polymorphic_on": role}


class Doctor(Account):
    __tablename__ = "doctors"

    id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    specialization = Column(String, nullable=False, default="")
    clinic_id = Column(
        String(36),
        ForeignKey("clinics.id", ondelete="SET NULL"),
        unique=True,
        nullable=True
    )

    clinic = relationship("Clinic", back_populates="doctor", foreign_keys=[clinic_id])
    hospitals = relationship("Hospital", secondary=doctor_hospitals, back_populates="doctors")
    patients = relationship("Patient", secondary=doctor_patients, back_populates="doctors")

    __mapper_args__ = {"polymorphic_identity": Role.DOCTOR}


class Hospital(Account):
    __tablename__ = "hospitals"

    id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)

    doctors = relationship("Doctor", secondary=doctor_hospitals, back_populates="hospitals")
    patients = relationship("Patient", secondary=hospital_patients, back_populates="hospitals")

    __mapper_args__ = {"polymorphic_identity": Role.HOSPITAL}


class Clinic(Account):
    __tablename__ = "clinics"

    id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)

    doctor = relationship(
        "Doctor",
        back_populates="clinic",
        foreign_keys="Doctor.clinic_id",
        uselist=False
    )

    __mapper_args__ = {"polymorphic_identity": Role.CLINIC}


class CheckupCenter(Account):
    __tablename__ = "checkup_centers"

    id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)

    patients = relationship("Patient", secondary=checkup_center_patients, back_populates="checkup_centers")

    __mapper_args__ = {"polymorphic_identity": Role.CHECKUP_CENTER}


class MedStore(Account):
    __tablename__ = "med_stores"

    id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)

    hand_raises = relationship("MedStoreHandRaise", back_populates="med_store", cascade="all, delete-orphan")

    __mapper_args__ = {"polymorphic_identity": Role.MEDSTORE}


class Patient(Account):
    __tablename__ = "patients"

    id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)

    doctors = relationship("Doctor", secondary=doctor_patients, back_populates="patients")
    hospitals = relationship("Hospital", secondary=hospital_patients, back_populates="patients")
    checkup_centers = relationship("CheckupCenter", secondary=checkup_center_patients, back_populates="patients")
    documents = relationship(
        "MedDocument",
        back_populates="patient",
        cascade="all, delete-orphan",
        foreign_keys="MedDocument.patient_id"
    )
    medicine_schedules = relationship(
        "MedicineSchedule",
        back_populates="patient",
        cascade="all, delete-orphan",
        foreign_keys="MedicineSchedule.patient_id"
    )

    __mapper_args__ = {"polymorphic_identity": Role.PATIENT}


class Compounder(Account):
    __tablename__ = "compounders"

    id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True)
    med_store_id = Column(String(36), ForeignKey("med_stores.id", ondelete="SET NULL"), nullable=True)

    clinic = relationship("Clinic", foreign_keys=[clinic_id])
    med_store = relationship("MedStore", foreign_keys=[med_store_id])
    hospitals = relationship("Hospital", secondary=compounder_hospitals)
    reviews = relationship(
        "Review",
        back_populates="compounder",
        foreign_keys="Review.compounder_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Review.created_at.desc()"
    )

    __mapper_args__ = {"polymorphic_identity": Role.COMPOUNDER}


class Admin(Account):
    __tablename__ = "admins"

    id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)

    __mapper_args__ = {"polymorphic_identity": Role.ADMIN}


ROLE_MODELS = {
    Role.DOCTOR: Doctor,
    Role.HOSPITAL: Hospital,
    Role.CLINIC: Clinic,
    Role.CHECKUP_CENTER: CheckupCenter,
    Role.MEDSTORE: MedStore,
    Role.PATIENT: Patient,
    Role.ADMIN: Admin,
    Role.COMPOUNDER: Compounder,
}


# --------------------------------------------------
# REVIEWS
# --------------------------------------------------

class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("doctors.id", ondelete="CASCADE"), nullable=True, index=True)
    hospital_id = Column(String(36), ForeignKey("hospitals.id", ondelete="CASCADE"), nullable=True, index=True)
    compounder_id = Column(String(36), ForeignKey("compounders.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    patient = relationship("Patient", foreign_keys=[patient_id])
    doctor = relationship("Doctor", foreign_keys=[doctor_id])
    hospital = relationship("Hospital", foreign_keys=[hospital_id])
    compounder = relationship("Compounder", back_populates="reviews", foreign_keys=[compounder_id])


# --------------------------------------------------
# DOCUMENTS
# --------------------------------------------------

class MedDocument(Base):
    __tablename__ = "med_documents"

    id = Column(String(36), primary_key=True, default=new_id)
    file_name = Column(String, nullable=False)
    file_url = Column(String, nullable=False)
    document_type = Column(_enum(DocumentType), nullable=False)
    description = Column(Text, nullable=True)
    uploader_type = Column(_enum(Role), nullable=False)
    uploaded_by_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    seek_availability = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    patient = relationship("Patient", back_populates="documents", foreign_keys=[patient_id])
    uploader = relationship("Account", foreign_keys=[uploaded_by_id])
    permissions = relationship("DocumentPermission", back_populates="document", cascade="all, delete-orphan")
    hand_raises = relationship("MedStoreHandRaise", back_populates="med_document", cascade="all, delete-orphan")

    def permitted_ids(self, role):
        return [p.grantee_id for p in self.permissions if p.grantee_role == role]

    @property
    def permitted_doctor_ids(self):
        return self.permitted_ids(Role.DOCTOR)

    @property
    def permitted_checkup_center_ids(self):
        return self.permitted_ids(Role.CHECKUP_CENTER)


class DocumentPermission(Base):
    __tablename__ = "document_permissions"
    __table_args__ = (
        UniqueConstraint("document_id", "grantee_role", "grantee_id", name="uq_document_grantee"),
    )

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(String(36), ForeignKey("med_documents.id", ondelete="CASCADE"), nullable=False)
    grantee_role = Column(_enum(Role), nullable=False)
    grantee_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    granted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    document = relationship("MedDocument", back_populates="permissions")


class MedStoreHandRaise(Base):
    __tablename__ = "med_store_hand_raises"
    __table_args__ = (
        UniqueConstraint("med_document_id", "med_store_id", name="uq_hand_raise"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    med_document_id = Column(String(36), ForeignKey("med_documents.id", ondelete="CASCADE"), nullable=False)
    med_store_id = Column(String(36), ForeignKey("med_stores.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    med_document = relationship("MedDocument", back_populates="hand_raises")
    med_store = relationship("MedStore", back_populates="hand_raises")


# --------------------------------------------------
# MEDICINE SCHEDULES
# --------------------------------------------------

class MedicineSchedule(Base):
    __tablename__ = "medicine_schedules"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(DateTime, nullable=False)
    number_of_days = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    scheduler_type = Column(_enum(Role), nullable=False)
    scheduler_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    patient = relationship("Patient", back_populates="medicine_schedules", foreign_keys=[patient_id])
    scheduler = relationship("Account", foreign_keys=[scheduler_id])
    items = relationship(
        "ScheduledMedicineItem",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ScheduledMedicineItem.created_at"
    )


class ScheduledMedicineItem(Base):
    __tablename__ = "scheduled_medicine_items"

    id = Column(String(36), primary_key=True, default=new_id)
    medicine_schedule_id = Column(
        String(36),
        ForeignKey("medicine_schedules.id", ondelete="CASCADE"),
        nullable=False
    )
    medicine_name = Column(String, nullable=False)
    dosage = Column(String, nullable=False)
    times_per_day = Column(Integer, nullable=False)
    gap_between_days = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    schedule = relationship("MedicineSchedule", back_populates="items")
    reminder_times = relationship(
        "MedicineReminderTime",
        back_populates="medicine_item",
        cascade="all, delete-orphan",
        order_by="MedicineReminderTime.reminder_time"
    )


class MedicineReminderTime(Base):
    __tablename__ = "medicine_reminder_times"

    id = Column(String(36), primary_key=True, default=new_id)
    medicine_item_id = Column(
        String(36),
        ForeignKey("scheduled_medicine_items.id", ondelete="CASCADE"),
        nullable=False
    )
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_taken_at = Column(DateTime, nullable=True)
    total_times_taken = Column(Integer, nullable=False, default=0)
    consecutive_days_taken = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    medicine_item = relationship("ScheduledMedicineItem", back_populates="reminder_times")


# --------------------------------------------------
# NEXT VISITS
# --------------------------------------------------

class DoctorNextVisit(Base):
    __tablename__ = "doctor_next_visits"
    __table_args__ = (
        UniqueConstraint("doctor_id", "patient_id", name="uq_doctor_next_visit"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    doctor_id = Column(String(36), ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    next_visit = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    doctor = relationship("Doctor", foreign_keys=[doctor_id])
    patient = relationship("Patient", foreign_keys=[patient_id])


class CheckupCenterNextVisit(Base):
    __tablename__ = "checkup_center_next_visits"
    __table_args__ = (
        UniqueConstraint("checkup_center_id", "patient_id", name="uq_checkup_center_next_visit"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    checkup_center_id = Column(String(36), ForeignKey("checkup_centers.id", ondelete="CASCADE"), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    next_visit = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    checkup_center = relationship("CheckupCenter", foreign_keys=[checkup_center_id])
    patient = relationship("Patient", foreign_keys=[patient_id])


# --------------------------------------------------
# REWARDS
# --------------------------------------------------

class Referral(Base):
    __tablename__ = "referrals"

    id = Column(String(36), primary_key=True, default=new_id)
    referrer_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    referrer_role = Column(_enum(Role), nullable=False)
    referred_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    referred_role = Column(_enum(Role), nullable=False)
    status = Column(_enum(ReferralStatus), nullable=False, default=ReferralStatus.PENDING)
    points_awarded = Column(Integer, nullable=False, default=0)
    is_service_referral = Column(Boolean, nullable=False, default=False)
    service_type = Column(_enum(ServiceType), nullable=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    referrer = relationship("Account", foreign_keys=[referrer_id])
    referred = relationship("Account", foreign_keys=[referred_id])
    patient = relationship("Patient", foreign_keys=[patient_id])


class RewardTransaction(Base):
    __tablename__ = "reward_transactions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_role = Column(_enum(Role), nullable=False)
    points = Column(Integer, nullable=False)
    transaction_type = Column(_enum(TransactionType), nullable=False)
    description = Column(String, nullable=False)
    referral_id = Column(String(36), ForeignKey("referrals.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    referral = relationship("Referral")


class RewardSetting(Base):
    __tablename__ = "reward_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, nullable=False)
    value = Column(Integer, nullable=False)
    description = Column(String, nullable=True)
    updated_by = Column(String, nullable=False, default="system")
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
