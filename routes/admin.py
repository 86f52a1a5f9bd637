import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from crud import get_or_404
from database import get_db
from models import (
    CheckupCenter,
    Clinic,
    DocumentType,
    Doctor,
    Hospital,
    MedDocument,
    MedStore,
    Role,
    VerificationStatus,
)
from schemas import AccountOut, AccountSummary, CurrentUser, MedDocumentDetail, MedDocumentOut, VerificationUpdate
from security import authorize_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

VERIFIABLE_ENTITIES = {
    "doctor": Doctor,
    "clinic": Clinic,
    "hospital": Hospital,
    "checkupCenter": CheckupCenter,
    "medStore": MedStore,
}


# ---------------- VERIFICATION ---------------- #

def pending_verifications(db):
    pending = []
    for entity_type, model in VERIFIABLE_ENTITIES.items():
        rows = db.query(model).filter(model.verification_status == VerificationStatus.PENDING).all()
        for row in rows:
            entry = AccountOut.model_validate(row).model_dump(by_alias=True)
            entry["entityType"] = entity_type
            pending.append(entry)
    pending.sort(key=lambda e: e["createdAt"])
    return pending


def set_verification_status(db, entity_type, entity_id, status):
    model = VERIFIABLE_ENTITIES.get(entity_type)
    if model is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid entity type: {entity_type}. Valid types are: {', '.join(VERIFIABLE_ENTITIES)}"
        )

    if status not in (VerificationStatus.VERIFIED.value, VerificationStatus.REJECTED.value):
        raise HTTPException(status_code=400, detail="Status must be VERIFIED or REJECTED")

    entity = get_or_404(db, model, entity_id, entity_type)
    entity.verification_status = VerificationStatus(status)
    db.commit()
    db.refresh(entity)

    logger.info("%s %s marked %s", entity_type, entity_id, status)
    return entity


@router.get("/pending-verifications")
def get_pending_verifications(user: CurrentUser = Depends(authorize_admin), db: Session = Depends(get_db)):
    return pending_verifications(db)


@router.patch("/verification/{entity_type}/{entity_id}")
def update_verification(
    entity_type: str,
    entity_id: str,
    data: VerificationUpdate,
    user: CurrentUser = Depends(authorize_admin),
    db: Session = Depends(get_db)
):
    entity = set_verification_status(db, entity_type, entity_id, data.status.strip().upper())
    return {
        "message": f"{entity_type} verification status updated to {entity.verification_status.value}",
        "entity": AccountOut.model_validate(entity),
    }


# ---------------- DOCUMENTS ---------------- #

def document_stats(db):
    now = datetime.utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    total = db.query(func.count(MedDocument.id)).scalar()
    prescriptions = db.query(func.count(MedDocument.id)).filter(
        MedDocument.document_type == DocumentType.PRESCRIPTION
    ).scalar()
    this_month = db.query(func.count(MedDocument.id)).filter(MedDocument.created_at >= month_start).scalar()
    patients_with_documents = db.query(func.count(func.distinct(MedDocument.patient_id))).scalar()
    with_permissions = db.query(func.count(MedDocument.id)).filter(or_(
        MedDocument.seek_availability.is_(True),
        MedDocument.permissions.any(),
    )).scalar()

    average = round(total / patients_with_documents, 1) if patients_with_documents else 0
    return {
        "totalDocuments": total,
        "prescriptions": prescriptions,
        "medicalReports": total - prescriptions,
        "documentsThisMonth": this_month,
        "averageDocumentsPerPatient": average,
        "documentsWithPermissions": with_permissions,
    }


@router.get("/documents")
def list_documents(
    patient_id: str = Query(None, alias="patientId"),
    document_type: DocumentType = Query(None, alias="documentType"),
    uploader_type: Role = Query(None, alias="uploaderType"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(authorize_admin),
    db: Session = Depends(get_db)
):
    query = db.query(MedDocument)
    if patient_id:
        query = query.filter(MedDocument.patient_id == patient_id)
    if document_type:
        query = query.filter(MedDocument.document_type == document_type)
    if uploader_type:
        query = query.filter(MedDocument.uploader_type == uploader_type)

    total = query.count()
    documents = query.order_by(MedDocument.created_at.desc()).offset(offset).limit(limit).all()

    results = []
    for document in documents:
        entry = MedDocumentOut.model_validate(document).model_dump(by_alias=True)
        entry["patient"] = AccountSummary.model_validate(document.patient)
        results.append(entry)

    return {"documents": results, "totalCount": total}


@router.get("/documents/stats")
def get_document_stats(user: CurrentUser = Depends(authorize_admin), db: Session = Depends(get_db)):
    return document_stats(db)


@router.get("/documents/{document_id}")
def get_document(document_id: str, user: CurrentUser = Depends(authorize_admin), db: Session = Depends(get_db)):
    return MedDocumentDetail.model_validate(get_or_404(db, MedDocument, document_id, "Document"))


@router.delete("/documents/{document_id}")
def delete_document(document_id: str, user: CurrentUser = Depends(authorize_admin), db: Session = Depends(get_db)):
    document = get_or_404(db, MedDocument, document_id, "Document")
    db.delete(document)
    db.commit()
    logger.info("Document %s deleted by admin %s", document_id, user.user_id)
    return {"message": "Document deleted successfully"}
