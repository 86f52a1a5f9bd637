from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from crud import LIKE_ESCAPE, escape_like, get_or_404
from database import get_db
from models import CheckupCenter, Doctor, Hospital, MedStore, Patient, Role, VerificationStatus
from reminders import start_of_day, upcoming_reminders
from routes.appointments import patient_visits
from routes.medicine_reminders import active_schedules
from schemas import AccountSummary, CurrentUser, DoctorSummary
from security import authorize

router = APIRouter(prefix="/api/home", tags=["home"])

RECOMMENDATION_LIMITS = {"doctors": 10, "hospitals": 8, "medStores": 8, "checkupCenters": 8}
ASSIGNED_LIMIT = 3


def nearby_verified(db, model, patient, exclude_ids, limit):
    location = [model.city.ilike(escape_like(patient.city), escape=LIKE_ESCAPE)] if patient.city else []
    if patient.state:
        location.append(model.state.ilike(escape_like(patient.state), escape=LIKE_ESCAPE))
    if not location:
        return []

    query = db.query(model).filter(
        model.verification_status == VerificationStatus.VERIFIED,
        or_(*location)
    )
    if exclude_ids:
        query = query.filter(model.id.notin_(exclude_ids))
    return query.order_by(model.reward_points.desc()).limit(limit).all()


@router.get("/recommendations")
def get_recommendations(user: CurrentUser = Depends(authorize(Role.PATIENT)), db: Session = Depends(get_db)):
    patient = get_or_404(db, Patient, user.user_id, "Patient")
    now = datetime.utcnow()

    assigned = {
        "doctors": [DoctorSummary.model_validate(d) for d in patient.doctors[:ASSIGNED_LIMIT]],
        "hospitals": [AccountSummary.model_validate(h) for h in patient.hospitals[:ASSIGNED_LIMIT]],
        "checkupCenters": [AccountSummary.model_validate(c) for c in patient.checkup_centers[:ASSIGNED_LIMIT]],
    }

    recommendations = {
        "doctors": [
            DoctorSummary.model_validate(d) for d in nearby_verified(
                db, Doctor, patient, [d.id for d in patient.doctors], RECOMMENDATION_LIMITS["doctors"]
            )
        ],
        "hospitals": [
            AccountSummary.model_validate(h) for h in nearby_verified(
                db, Hospital, patient, [h.id for h in patient.hospitals], RECOMMENDATION_LIMITS["hospitals"]
            )
        ],
        "medStores": [
            AccountSummary.model_validate(m) for m in nearby_verified(
                db, MedStore, patient, [], RECOMMENDATION_LIMITS["medStores"]
            )
        ],
        "checkupCenters": [
            AccountSummary.model_validate(c) for c in nearby_verified(
                db, CheckupCenter, patient, [c.id for c in patient.checkup_centers],
                RECOMMENDATION_LIMITS["checkupCenters"]
            )
        ],
    }

    schedules = active_schedules(db, patient.id, now)
    visits = patient_visits(db, patient.id)
    today, tomorrow = start_of_day(now), start_of_day(now) + timedelta(days=1)

    return {
        "assignedProviders": assigned,
        "recommendations": recommendations,
        "upcomingReminders": upcoming_reminders(schedules, now),
        "todayAppointments": [v for v in visits if today <= v["nextVisit"] < tomorrow],
        "upcomingAppointments": [v for v in visits if v["nextVisit"] >= now][:10],
        "activeMedicineSchedules": len(schedules),
        "patientLocation": {"city": patient.city, "state": patient.state},
    }
