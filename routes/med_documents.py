import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from crud import get_or_404
from database import get_db
from documents import (
    can_modify_document,
    can_view_document,
    grant_permission,
    grantee_exists,
    is_subject_patient,
    replace_permissions,
    revoke_permission,
    visible_documents,
)
from models import DocumentType, MedDocument, Patient, Role
from schemas import (
    CheckupCenterPermissionGrant,
    CheckupCenterPermissionRevoke,
    CurrentUser,
    DoctorPermissionGrant,
    DoctorPermissionRevoke,
    MedDocumentCreate,
    MedDocumentDetail,
    MedDocumentOut,
    MedDocumentUpdate,
)
from security import authenticate, authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/med-documents", tags=["med-documents"])

GRANTEE_LABELS = {Role.DOCTOR: "Doctor", Role.CHECKUP_CENTER: "Checkup center"}


def _check_grantees(db, role, grantee_ids):
    for grantee_id in grantee_ids:
        if not grantee_exists(db, role, grantee_id):
            raise HTTPException(status_code=404, detail=f"{GRANTEE_LABELS[role]} {grantee_id} not found")


def _own_document(db, document_id, user):
    """The document, provided the caller is its subject patient."""
    document = db.get(MedDocument, document_id)
    if document is None or not is_subject_patient(document, user.user_id, user.role):
        raise HTTPException(status_code=404, detail="Document not found or you are not its owner")
    return document


# ---------------- CRUD ---------------- #

@router.post("/", status_code=201)
def create_med_document(
    data: MedDocumentCreate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    if user.role == Role.PATIENT and data.patient_id != user.user_id:
        raise HTTPException(status_code=403, detail="Patients can only upload their own documents")

    get_or_404(db, Patient, data.patient_id, "Patient")
    _check_grantees(db, Role.DOCTOR, data.permitted_doctor_ids)
    _check_grantees(db, Role.CHECKUP_CENTER, data.permitted_checkup_center_ids)

    document = MedDocument(
        file_name=data.file_name,
        file_url=data.file_url,
        document_type=data.document_type,
        description=data.description,
        patient_id=data.patient_id,
        seek_availability=data.seek_availability,
        uploader_type=user.role,
        uploaded_by_id=user.user_id,
    )
    db.add(document)
    db.flush()
    replace_permissions(document, Role.DOCTOR, data.permitted_doctor_ids)
    replace_permissions(document, Role.CHECKUP_CENTER, data.permitted_checkup_center_ids)
    db.commit()
    db.refresh(document)

    logger.info("Document %s uploaded by %s %s", document.id, user.role.value, user.user_id)
    return MedDocumentOut.model_validate(document)


@router.get("/")
def list_med_documents(
    patient_id: str = Query(None, alias="patientId"),
    document_type: DocumentType = Query(None, alias="documentType"),
    uploader_type: Role = Query(None, alias="uploaderType"),
    uploaded_by_myself: bool = Query(False, alias="uploadedByMySelf"),
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    query = db.query(MedDocument)
    if patient_id:
        query = query.filter(MedDocument.patient_id == patient_id)
    if document_type:
        query = query.filter(MedDocument.document_type == document_type)
    if uploader_type:
        query = query.filter(MedDocument.uploader_type == uploader_type)
    if uploaded_by_myself:
        query = query.filter(MedDocument.uploaded_by_id == user.user_id)

    documents = query.order_by(MedDocument.created_at.desc()).all()
    return [MedDocumentOut.model_validate(d) for d in visible_documents(documents, user.user_id, user.role)]


@router.get("/{document_id}")
def get_med_document(document_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    document = get_or_404(db, MedDocument, document_id, "Document")
    if not can_view_document(document, user.user_id, user.role):
        raise HTTPException(status_code=403, detail="You do not have permission to view this document")
    return MedDocumentDetail.model_validate(document)


@router.put("/{document_id}")
def update_med_document(
    document_id: str,
    data: MedDocumentUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    document = get_or_404(db, MedDocument, document_id, "Document")
    if not can_modify_document(document, user.user_id, user.role):
        raise HTTPException(status_code=403, detail="You do not have permission to update this document")

    if data.description is not None:
        document.description = data.description
    if data.document_type is not None:
        document.document_type = data.document_type
    if data.seek_availability is not None:
        document.seek_availability = data.seek_availability
    if data.permitted_doctor_ids is not None:
        _check_grantees(db, Role.DOCTOR, data.permitted_doctor_ids)
        replace_permissions(document, Role.DOCTOR, data.permitted_doctor_ids)
    if data.permitted_checkup_center_ids is not None:
        _check_grantees(db, Role.CHECKUP_CENTER, data.permitted_checkup_center_ids)
        replace_permissions(document, Role.CHECKUP_CENTER, data.permitted_checkup_center_ids)

    db.commit()
    db.refresh(document)
    return MedDocumentOut.model_validate(document)


@router.delete("/{document_id}")
def delete_med_document(document_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    document = get_or_404(db, MedDocument, document_id, "Document")
    if not can_modify_document(document, user.user_id, user.role):
        raise HTTPException(status_code=403, detail="You do not have permission to delete this document")

    db.delete(document)
    db.commit()
    logger.info("Document %s deleted by %s %s", document_id, user.role.value, user.user_id)
    return {"message": "Document deleted successfully"}


# ---------------- PERMISSIONS ---------------- #

@router.post("/grant-doctor-permission")
def grant_doctor_permission(
    data: DoctorPermissionGrant,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    document = _own_document(db, data.document_id, user)
    _check_grantees(db, Role.DOCTOR, [data.doctor_id_to_permit])
    grant_permission(document, Role.DOCTOR, data.doctor_id_to_permit)
    db.commit()
    db.refresh(document)
    return {"message": "Doctor permission granted", "document": MedDocumentOut.model_validate(document)}


@router.post("/revoke-doctor-permission")
def revoke_doctor_permission(
    data: DoctorPermissionRevoke,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    document = _own_document(db, data.document_id, user)
    revoke_permission(document, Role.DOCTOR, data.doctor_id_to_revoke)
    db.commit()
    db.refresh(document)
    return {"message": "Doctor permission revoked", "document": MedDocumentOut.model_validate(document)}


@router.post("/grant-checkupcenter-permission")
def grant_checkup_center_permission(
    data: CheckupCenterPermissionGrant,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    document = _own_document(db, data.document_id, user)
    _check_grantees(db, Role.CHECKUP_CENTER, [data.checkup_center_id_to_permit])
    grant_permission(document, Role.CHECKUP_CENTER, data.checkup_center_id_to_permit)
    db.commit()
    db.refresh(document)
    return {"message": "Checkup center permission granted", "document": MedDocumentOut.model_validate(document)}


@router.post("/revoke-checkupcenter-permission")
def revoke_checkup_center_permission(
    data: CheckupCenterPermissionRevoke,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    document = _own_document(db, data.document_id, user)
    revoke_permission(document, Role.CHECKUP_CENTER, data.checkup_center_id_to_revoke)
    db.commit()
    db.refresh(document)
    return {"message": "Checkup center permission revoked", "document": MedDocumentOut.model_validate(document)}
