import logging
import re

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models import DocumentType, MedDocument, Role
from schemas import AccountSummary, CurrentUser, GlobalMedicineRequest, MedDocumentOut
from security import authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/global-medicine", tags=["global-medicine"])

REQUEST_PREFIX = "Global medicine request"
DESCRIPTION_RE = re.compile(r"^Global medicine request - Delivery to: (?P<address>.*?)\. Notes: (?P<notes>.*)$", re.S)


def request_description(delivery_address, notes):
    return f"{REQUEST_PREFIX} - Delivery to: {delivery_address}. Notes: {notes or 'None'}"


def parse_request_description(description):
    match = DESCRIPTION_RE.match(description or "")
    if not match:
        return {"deliveryAddress": None, "notes": None}
    notes = match.group("notes")
    return {"deliveryAddress": match.group("address"), "notes": None if notes == "None" else notes}


@router.post("/request", status_code=201)
def create_request(
    data: GlobalMedicineRequest,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    document = MedDocument(
        file_name=f"global-medicine-request-{data.prescription_image_url.rsplit('/', 1)[-1]}",
        file_url=data.prescription_image_url,
        document_type=DocumentType.PRESCRIPTION,
        description=request_description(data.delivery_address, data.notes),
        patient_id=user.user_id,
        uploader_type=Role.PATIENT,
        uploaded_by_id=user.user_id,
        seek_availability=True,
    )
    db.add(document)
    db.commit()
    db.refresh(document)

    logger.info("Global medicine request %s created by %s", document.id, user.user_id)
    return {
        "message": "Global medicine request submitted successfully",
        "request": {
            **MedDocumentOut.model_validate(document).model_dump(by_alias=True),
            "deliveryAddress": data.delivery_address,
            "notes": data.notes,
            "status": "PENDING",
        },
    }


@router.get("/my-requests")
def my_requests(user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    documents = db.query(MedDocument).filter(
        MedDocument.patient_id == user.user_id,
        MedDocument.document_type == DocumentType.PRESCRIPTION,
        MedDocument.description.like(f"{REQUEST_PREFIX}%")
    ).order_by(MedDocument.created_at.desc()).all()

    requests = []
    for document in documents:
        quotes = [
            {
                "id": h.id,
                "medStore": AccountSummary.model_validate(h.med_store),
                "createdAt": h.created_at,
            }
            for h in document.hand_raises
        ]
        requests.append({
            **MedDocumentOut.model_validate(document).model_dump(by_alias=True),
            **parse_request_description(document.description),
            "status": "QUOTES_RECEIVED" if quotes else "PENDING",
            "quotes": quotes,
        })
    return {"requests": requests}
