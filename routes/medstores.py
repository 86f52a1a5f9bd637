import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crud import create_account, delete_account, get_or_404, ilike_any, list_accounts, paginate, update_account
from database import get_db
from models import MedDocument, MedStore, MedStoreHandRaise, Patient, Role, VerificationStatus
from schemas import AccountCreate, AccountOut, AccountSummary, AccountUpdate, CurrentUser, HandRaiseOut, MedDocumentOut
from security import authenticate, authorize, ensure_self_or_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/medstores", tags=["medstores"])


def prescription_listing(document, med_store_id=None):
    entry = MedDocumentOut.model_validate(document).model_dump(by_alias=True)
    entry["patient"] = AccountSummary.model_validate(document.patient)
    entry["handRaiseCount"] = len(document.hand_raises)
    if med_store_id:
        entry["hasRaisedHand"] = any(h.med_store_id == med_store_id for h in document.hand_raises)
    return entry


@router.get("/")
def list_med_stores(page: int = 1, limit: int = 10, search: str = None, db: Session = Depends(get_db)):
    return list_accounts(db, MedStore, page, limit, search, AccountOut.model_validate)


@router.get("/available-prescriptions")
def available_prescriptions(
    page: int = 1,
    limit: int = 10,
    search: str = None,
    user: CurrentUser = Depends(authorize(Role.MEDSTORE, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    query = db.query(MedDocument).join(MedDocument.patient).filter(MedDocument.seek_availability.is_(True))

    if search:
        query = query.filter(ilike_any(
            [MedDocument.file_name, MedDocument.description, Patient.name, Patient.email],
            search
        ))

    query = query.order_by(MedDocument.created_at.desc())
    store_id = user.user_id if user.role == Role.MEDSTORE else None
    return paginate(query, page, limit, lambda d: prescription_listing(d, store_id))


@router.get("/{med_store_id}")
def get_med_store(med_store_id: str, db: Session = Depends(get_db)):
    return AccountOut.model_validate(get_or_404(db, MedStore, med_store_id, "Med store"))


@router.post("/", status_code=201)
def create_med_store(data: AccountCreate, db: Session = Depends(get_db)):
    return AccountOut.model_validate(create_account(db, MedStore, data))


@router.put("/{med_store_id}")
def update_med_store(
    med_store_id: str,
    data: AccountUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, med_store_id)
    store = get_or_404(db, MedStore, med_store_id, "Med store")
    return AccountOut.model_validate(update_account(db, store, data))


@router.delete("/{med_store_id}")
def delete_med_store(med_store_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    ensure_self_or_admin(user, med_store_id)
    delete_account(db, get_or_404(db, MedStore, med_store_id, "Med store"))
    return {"message": "Med store deleted successfully"}


# ---------------- HAND RAISES ---------------- #

@router.post("/{med_store_id}/raise-hand/{med_document_id}", status_code=201)
def raise_hand(
    med_store_id: str,
    med_document_id: str,
    user: CurrentUser = Depends(authorize(Role.MEDSTORE, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, med_store_id)

    document = get_or_404(db, MedDocument, med_document_id, "Prescription")
    if not document.seek_availability:
        raise HTTPException(status_code=400, detail="This prescription is not seeking availability")

    store = get_or_404(db, MedStore, med_store_id, "Med store")
    if store.verification_status != VerificationStatus.VERIFIED:
        raise HTTPException(status_code=403, detail="Only verified med stores can raise a hand")

    hand_raise = MedStoreHandRaise(med_document_id=document.id, med_store_id=store.id)
    db.add(hand_raise)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="You have already raised a hand for this prescription") from None

    db.refresh(hand_raise)
    logger.info("Med store %s raised hand for document %s", store.id, document.id)
    return {"message": "Hand raised successfully", "handRaise": HandRaiseOut.model_validate(hand_raise)}


@router.delete("/{med_store_id}/withdraw-hand/{med_document_id}")
def withdraw_hand(
    med_store_id: str,
    med_document_id: str,
    user: CurrentUser = Depends(authorize(Role.MEDSTORE, Role.ADMIN)),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(user, med_store_id)

    hand_raise = db.query(MedStoreHandRaise).filter(
        MedStoreHandRaise.med_document_id == med_document_id,
        MedStoreHandRaise.med_store_id == med_store_id
    ).first()
    if hand_raise is None:
        raise HTTPException(status_code=404, detail="Hand raise not found")

    db.delete(hand_raise)
    db.commit()
    logger.info("Med store %s withdrew hand for document %s", med_store_id, med_document_id)
    return {"message": "Hand withdrawn successfully"}
