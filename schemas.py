from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from models import DocumentType, ReferralStatus, Role, ServiceType, TransactionType, VerificationStatus


def _naive_utc(value: datetime):
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_naive_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CurrentUser(BaseModel):
    user_id: str
    role: Role
    verification_status: str = "PENDING"


# --------------------------------------------------
# ACCOUNTS
# --------------------------------------------------

class AccountCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    address_line: str = ""
    city: str = ""
    state: str = ""
    pin: str = ""
    country: str = "India"
    specialization: str = ""


class RegisterRequest(AccountCreate):
    role: str


class LoginRequest(CamelModel):
    email: str
    password: str


class AccountUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    address_line: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin: Optional[str] = None
    country: Optional[str] = None
    specialization: Optional[str] = None


class AccountSummary(CamelModel):
    id: str
    user_id: str
    role: Role
    name: str
    email: str
    phone: str
    city: str
    state: str
    verification_status: VerificationStatus


class AccountOut(AccountSummary):
    address_line: str
    pin: str
    country: str
    reward_points: int
    created_at: datetime
    updated_at: datetime


class DoctorSummary(AccountSummary):
    specialization: str


class DoctorOut(AccountOut):
    specialization: str
    clinic_id: Optional[str] = None


class DoctorDetail(DoctorOut):
    clinic: Optional[AccountSummary] = None
    hospitals: List[AccountSummary] = []
    patients: List[AccountSummary] = []


class HospitalDetail(AccountOut):
    doctors: List[DoctorSummary] = []
    patients: List[AccountSummary] = []


class ClinicDetail(AccountOut):
    doctor: Optional[DoctorSummary] = None


class CheckupCenterDetail(AccountOut):
    patients: List[AccountSummary] = []


class PatientDetail(AccountOut):
    doctors: List[DoctorSummary] = []
    hospitals: List[AccountSummary] = []
    checkup_centers: List[AccountSummary] = []


class CompounderOut(AccountOut):
    clinic_id: Optional[str] = None
    med_store_id: Optional[str] = None


class CompounderDetail(CompounderOut):
    clinic: Optional[AccountSummary] = None
    med_store: Optional[AccountSummary] = None
    hospitals: List[AccountSummary] = []
    reviews: List["ReviewDetail"] = []


# --------------------------------------------------
# RELATIONSHIPS
# --------------------------------------------------

class DoctorHospitalLink(CamelModel):
    doctor_id: str
    hospital_id: str


class DoctorPatientLink(CamelModel):
    doctor_id: str
    patient_id: str


class HospitalPatientLink(CamelModel):
    hospital_id: str
    patient_id: str


class CheckupCenterPatientLink(CamelModel):
    checkup_center_id: str
    patient_id: str


class ClinicDoctorLink(CamelModel):
    doctor_id: str


class CompounderHospitalLink(CamelModel):
    compounder_id: str
    hospital_id: str


class CompounderClinicLink(CamelModel):
    compounder_id: str
    clinic_id: str


class CompounderMedStoreLink(CamelModel):
    compounder_id: str
    med_store_id: str


class CompounderUnlink(CamelModel):
    compounder_id: str


class NextVisitUpdate(CamelModel):
    next_visit_date: UtcDatetime


class VerificationUpdate(CamelModel):
    status: str


# --------------------------------------------------
# REVIEWS
# --------------------------------------------------

class ReviewCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    doctor_id: Optional[str] = None
    hospital_id: Optional[str] = None
    compounder_id: Optional[str] = None


class ReviewUpdate(CamelModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = None


class ReviewOut(CamelModel):
    id: str
    rating: int
    comment: Optional[str] = None
    patient_id: str
    doctor_id: Optional[str] = None
    hospital_id: Optional[str] = None
    compounder_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReviewDetail(ReviewOut):
    patient: Optional[AccountSummary] = None
    doctor: Optional[DoctorSummary] = None
    hospital: Optional[AccountSummary] = None
    compounder: Optional[AccountSummary] = None


CompounderDetail.model_rebuild()


# --------------------------------------------------
# DOCUMENTS
# --------------------------------------------------

class MedDocumentCreate(CamelModel):
    file_name: str = Field(..., min_length=1)
    file_url: str = Field(..., min_length=1)
    document_type: DocumentType
    patient_id: str
    description: Optional[str] = None
    seek_availability: bool = False
    permitted_doctor_ids: List[str] = []
    permitted_checkup_center_ids: List[str] = []


class MedDocumentUpdate(CamelModel):
    description: Optional[str] = None
    document_type: Optional[DocumentType] = None
    seek_availability: Optional[bool] = None
    permitted_doctor_ids: Optional[List[str]] = None
    permitted_checkup_center_ids: Optional[List[str]] = None


class DoctorPermissionGrant(CamelModel):
    document_id: str
    doctor_id_to_permit: str


class DoctorPermissionRevoke(CamelModel):
    document_id: str
    doctor_id_to_revoke: str


class CheckupCenterPermissionGrant(CamelModel):
    document_id: str
    checkup_center_id_to_permit: str


class CheckupCenterPermissionRevoke(CamelModel):
    document_id: str
    checkup_center_id_to_revoke: str


class HandRaiseOut(CamelModel):
    id: str
    med_document_id: str
    med_store_id: str
    created_at: datetime
    med_store: Optional[AccountSummary] = None


class MedDocumentOut(CamelModel):
    id: str
    file_name: str
    file_url: str
    document_type: DocumentType
    description: Optional[str] = None
    uploader_type: Role
    uploaded_by_id: str
    patient_id: str
    seek_availability: bool
    permitted_doctor_ids: List[str] = []
    permitted_checkup_center_ids: List[str] = []
    created_at: datetime
    updated_at: datetime


class MedDocumentDetail(MedDocumentOut):
    patient: Optional[AccountSummary] = None
    hand_raises: List[HandRaiseOut] = []


# --------------------------------------------------
# MEDICINE SCHEDULES
# --------------------------------------------------

class MedicineItemIn(CamelModel):
    id: Optional[str] = None
    medicine_name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    times_per_day: int = Field(..., gt=0)
    gap_between_days: int = Field(0, ge=0)
    notes: Optional[str] = None


class MedicineScheduleCreate(CamelModel):
    patient_id: str
    start_date: UtcDatetime
    number_of_days: int = Field(..., gt=0)
    notes: Optional[str] = None
    items: List[MedicineItemIn] = Field(..., min_length=1)


class MedicineScheduleUpdate(CamelModel):
    start_date: Optional[UtcDatetime] = None
    number_of_days: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None
    items: Optional[List[MedicineItemIn]] = None


class MedicineConfirm(CamelModel):
    medicine_item_id: str
    taken_at: UtcDatetime


class ReminderTimeOut(CamelModel):
    id: str
    medicine_item_id: str
    patient_id: str
    reminder_time: str
    is_active: bool
    last_taken_at: Optional[datetime] = None
    total_times_taken: int
    consecutive_days_taken: int


class MedicineItemOut(CamelModel):
    id: str
    medicine_schedule_id: str
    medicine_name: str
    dosage: str
    times_per_day: int
    gap_between_days: int
    notes: Optional[str] = None
    reminder_times: List[ReminderTimeOut] = []


class MedicineScheduleOut(CamelModel):
    id: str
    patient_id: str
    start_date: datetime
    number_of_days: int
    notes: Optional[str] = None
    scheduler_type: Role
    scheduler_id: str
    created_at: datetime
    updated_at: datetime
    items: List[MedicineItemOut] = []
    patient: Optional[AccountSummary] = None


class ReminderTimesSet(CamelModel):
    medicine_item_id: str
    reminder_times: List[str] = Field(..., min_length=1)


class ReminderTimeUpdate(CamelModel):
    reminder_time: Optional[str] = None
    is_active: Optional[bool] = None


class MedicineTaken(CamelModel):
    taken_at: Optional[UtcDatetime] = None


# --------------------------------------------------
# APPOINTMENTS
# --------------------------------------------------

class DoctorAppointmentCreate(CamelModel):
    doctor_id: str
    next_visit: UtcDatetime = Field(..., validation_alias=AliasChoices("nextVisit", "next_visit", "visitDate"))


class CheckupAppointmentCreate(CamelModel):
    checkup_center_id: str
    next_visit: UtcDatetime = Field(..., validation_alias=AliasChoices("nextVisit", "next_visit", "visitDate"))


# --------------------------------------------------
# REWARDS
# --------------------------------------------------

class ReferralCreate(CamelModel):
    referred_id: str = Field(..., validation_alias=AliasChoices("referredId", "referred_id", "referredUserId"))
    referred_role: str


class ServiceReferralCreate(CamelModel):
    referred_id: str
    referred_role: str
    service_type: ServiceType
    patient_id: str
    notes: Optional[str] = None


class RewardSettingUpdate(CamelModel):
    key: str = Field(..., min_length=1)
    value: int
    description: Optional[str] = None


class ReferralOut(CamelModel):
    id: str
    referrer_id: str
    referrer_role: Role
    referred_id: str
    referred_role: Role
    status: ReferralStatus
    points_awarded: int
    is_service_referral: bool
    service_type: Optional[ServiceType] = None
    patient_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class RewardTransactionOut(CamelModel):
    id: str
    user_id: str
    user_role: Role
    points: int
    transaction_type: TransactionType
    description: str
    referral_id: Optional[str] = None
    created_at: datetime


class RewardSettingOut(CamelModel):
    id: int
    key: str
    value: int
    description: Optional[str] = None
    updated_by: str
    updated_at: datetime


# --------------------------------------------------
# GLOBAL MEDICINE
# --------------------------------------------------

class GlobalMedicineRequest(CamelModel):
    prescription_image_url: str = Field(..., min_length=1)
    delivery_address: str = Field(..., min_length=1)
    notes: Optional[str] = None
