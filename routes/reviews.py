import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from crud import get_or_404
from database import get_db
from models import Compounder, Doctor, Hospital, Review, Role
from schemas import CurrentUser, ReviewCreate, ReviewDetail, ReviewUpdate
from security import authenticate, authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["reviews"])

TARGETS = (
    ("doctor_id", Doctor, "Doctor"),
    ("hospital_id", Hospital, "Hospital"),
    ("compounder_id", Compounder, "Compounder"),
)


def _owned_review(db, review_id, user):
    review = get_or_404(db, Review, review_id, "Review")
    if user.role != Role.ADMIN and review.patient_id != user.user_id:
        raise HTTPException(status_code=403, detail="You can only change your own reviews")
    return review


@router.get("/")
def list_reviews(
    doctor_id: str = Query(None, alias="doctorId"),
    hospital_id: str = Query(None, alias="hospitalId"),
    compounder_id: str = Query(None, alias="compounderId"),
    patient_id: str = Query(None, alias="patientId"),
    db: Session = Depends(get_db)
):
    query = db.query(Review)
    for column, value in (
        (Review.doctor_id, doctor_id),
        (Review.hospital_id, hospital_id),
        (Review.compounder_id, compounder_id),
        (Review.patient_id, patient_id),
    ):
        if value:
            query = query.filter(column == value)

    return [ReviewDetail.model_validate(r) for r in query.order_by(Review.created_at.desc()).all()]


@router.get("/{review_id}")
def get_review(review_id: str, db: Session = Depends(get_db)):
    return ReviewDetail.model_validate(get_or_404(db, Review, review_id, "Review"))


@router.post("/", status_code=201)
def create_review(
    data: ReviewCreate,
    user: CurrentUser = Depends(authorize(Role.PATIENT)),
    db: Session = Depends(get_db)
):
    targets = [(field, model, label) for field, model, label in TARGETS if getattr(data, field)]
    if len(targets) != 1:
        raise HTTPException(
            status_code=400,
            detail="A review must target exactly one of doctorId, hospitalId or compounderId"
        )

    field, model, label = targets[0]
    target = get_or_404(db, model, getattr(data, field), label)

    review = Review(
        rating=data.rating,
        comment=data.comment,
        patient_id=user.user_id,
        **{field: target.id}
    )
    db.add(review)
    db.commit()
    db.refresh(review)

    logger.info("Patient %s reviewed %s %s (%d)", user.user_id, label.lower(), target.id, review.rating)
    return ReviewDetail.model_validate(review)


@router.put("/{review_id}")
def update_review(
    review_id: str,
    data: ReviewUpdate,
    user: CurrentUser = Depends(authenticate),
    db: Session = Depends(get_db)
):
    review = _owned_review(db, review_id, user)

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(review, field, value)

    db.commit()
    db.refresh(review)
    return ReviewDetail.model_validate(review)


@router.delete("/{review_id}", status_code=204)
def delete_review(review_id: str, user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    review = _owned_review(db, review_id, user)
    db.delete(review)
    db.commit()
    logger.info("Review %s deleted by %s", review_id, user.user_id)
    return Response(status_code=204)
