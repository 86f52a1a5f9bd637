import logging
import os
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from config import MAX_UPLOAD_BYTES, UPLOAD_DIR
from database import get_db
from models import DocumentType, MedDocument, Role
from schemas import CurrentUser, HandRaiseOut, MedDocumentOut
from security import authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/prescriptions", tags=["prescriptions"])

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".pdf"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "application/pdf"}
CHUNK_SIZE = 1024 * 1024


def prescriptions_dir():
    path = os.path.join(UPLOAD_DIR, "prescriptions")
    os.makedirs(path, exist_ok=True)
    return path


def save_upload(upload):
    extension = os.path.splitext(upload.filename or "")[1].lower()
    if extension not in ALLOWED_EXTENSIONS or upload.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Only JPEG, JPG, PNG and PDF files are allowed")

    stored_name = f"prescription-{uuid.uuid4().hex}{extension}"
    destination = os.path.join(prescriptions_dir(), stored_name)

    written = 0
    with open(destination, "wb") as out:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > MAX_UPLOAD_BYTES:
                out.close()
                os.remove(destination)
                raise HTTPException(status_code=400, detail="File too large. Maximum size is 10MB")
            out.write(chunk)

    return stored_name


@router.post("/upload", status_code=201)
def upload_prescription(
    prescription: UploadFile = File(...),
    description: str = Form(None),
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    stored_name = save_upload(prescription)

    document = MedDocument(
        file_name=prescription.filename,
        file_url=f"/uploads/prescriptions/{stored_name}",
        document_type=DocumentType.PRESCRIPTION,
        description=description or "Prescription uploaded for medicine availability",
        patient_id=user.user_id,
        uploader_type=Role.PATIENT,
        uploaded_by_id=user.user_id,
        seek_availability=True,
    )
    db.add(document)
    db.commit()
    db.refresh(document)

    logger.info("Patient %s uploaded prescription %s", user.user_id, document.id)
    return {"message": "Prescription uploaded successfully", "prescription": MedDocumentOut.model_validate(document)}


@router.get("/my-prescriptions")
def my_prescriptions(user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    documents = db.query(MedDocument).filter(
        MedDocument.patient_id == user.user_id,
        MedDocument.document_type == DocumentType.PRESCRIPTION
    ).order_by(MedDocument.created_at.desc()).all()

    results = []
    for document in documents:
        entry = MedDocumentOut.model_validate(document).model_dump(by_alias=True)
        entry["handRaises"] = [HandRaiseOut.model_validate(h) for h in document.hand_raises]
        results.append(entry)
    return {"prescriptions": results}
