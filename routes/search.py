from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from crud import ilike_any
from database import get_db
from models import CheckupCenter, Doctor, Hospital, MedicineSchedule, MedStore, ScheduledMedicineItem, VerificationStatus
from schemas import AccountSummary, DoctorSummary

router = APIRouter(prefix="/api/search", tags=["search"])

SEARCHABLE = {
    "doctors": (Doctor, DoctorSummary, "doctor", 10),
    "hospitals": (Hospital, AccountSummary, "hospital", 8),
    "medstores": (MedStore, AccountSummary, "medstore", 8),
    "checkupCenters": (CheckupCenter, AccountSummary, "checkupCenter", 8),
}

COMMON_MEDICINES = [
    {"medicineName": "Paracetamol", "dosage": "500mg", "category": "Pain Relief", "type": "otc"},
    {"medicineName": "Ibuprofen", "dosage": "400mg", "category": "Anti-inflammatory", "type": "otc"},
    {"medicineName": "Amoxicillin", "dosage": "250mg", "category": "Antibiotic", "type": "prescription"},
    {"medicineName": "Omeprazole", "dosage": "20mg", "category": "Acid Reducer", "type": "prescription"},
    {"medicineName": "Aspirin", "dosage": "75mg", "category": "Blood Thinner", "type": "otc"},
    {"medicineName": "Cetirizine", "dosage": "10mg", "category": "Antihistamine", "type": "otc"},
    {"medicineName": "Metformin", "dosage": "500mg", "category": "Diabetes", "type": "prescription"},
    {"medicineName": "Atorvastatin", "dosage": "20mg", "category": "Cholesterol", "type": "prescription"},
]

MEDICINE_CATEGORIES = [
    (("paracetamol", "acetaminophen", "ibuprofen", "aspirin"), "Pain Relief"),
    (("amoxicillin", "azithromycin", "ciprofloxacin"), "Antibiotic"),
    (("omeprazole", "pantoprazole", "ranitidine"), "Acid Reducer"),
    (("metformin", "insulin", "glipizide"), "Diabetes"),
    (("atorvastatin", "simvastatin"), "Cholesterol"),
    (("cetirizine", "loratadine", "fexofenadine"), "Antihistamine"),
    (("calcium", "vitamin", "iron"), "Supplement"),
]

SUGGESTIONS = [
    "Cardiologist near me",
    "Emergency hospital",
    "Pharmacy 24 hours",
    "Pediatrician consultation",
    "Blood test center",
    "Paracetamol alternatives",
    "Diabetes specialist",
    "Orthopedic doctor",
]


def medicine_category(name):
    lowered = name.lower()
    for keywords, category in MEDICINE_CATEGORIES:
        if any(k in lowered for k in keywords):
            return category
    return "General Medicine"


def provider_rating(reward_points):
    return min(5, reward_points // 20 + 3)


def _location_filters(model, city, state):
    filters = [model.verification_status == VerificationStatus.VERIFIED]
    if city:
        filters.append(ilike_any([model.city], city))
    if state:
        filters.append(ilike_any([model.state], state))
    return filters


def _result(row, schema, kind):
    entry = schema.model_validate(row).model_dump(by_alias=True)
    entry["type"] = kind
    entry["rewardPoints"] = row.reward_points
    entry["rating"] = provider_rating(row.reward_points)
    return entry


@router.get("/")
def global_search(
    query: str = None,
    type: str = None,
    city: str = None,
    state: str = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Search query is required")
    if type and type not in SEARCHABLE:
        raise HTTPException(status_code=400, detail=f"Invalid type: {type}")

    term = query.strip().lower()
    results = {key: [] for key in SEARCHABLE}

    for key, (model, schema, kind, default_take) in SEARCHABLE.items():
        if type and type != key:
            continue

        columns = [model.name, model.email, model.phone, model.city, model.state]
        if model is Doctor:
            columns.append(Doctor.specialization)

        rows = db.query(model).filter(
            *_location_filters(model, city, state),
            ilike_any(columns, term)
        ).order_by(model.reward_points.desc()).offset(offset if type else 0).limit(limit if type else default_take).all()

        results[key] = [_result(row, schema, kind) for row in rows]

    return {
        "query": term,
        "total": sum(len(v) for v in results.values()),
        "filters": {"type": type, "city": city, "state": state},
        "results": results,
    }


@router.get("/medicines")
def search_medicines(
    query: str = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Medicine search query is required")

    term = query.strip().lower()

    rows = db.query(ScheduledMedicineItem, MedicineSchedule.scheduler_id).join(
        MedicineSchedule, ScheduledMedicineItem.medicine_schedule_id == MedicineSchedule.id
    ).filter(ilike_any(
        [ScheduledMedicineItem.medicine_name, ScheduledMedicineItem.dosage, ScheduledMedicineItem.notes], term
    )).all()

    grouped = {}
    for item, scheduler_id in rows:
        key = (item.medicine_name.lower(), item.dosage.lower())
        entry = grouped.setdefault(key, {
            "medicineName": item.medicine_name,
            "dosage": item.dosage,
            "commonNotes": item.notes,
            "prescriptionCount": 0,
            "prescribers": set(),
            "type": "prescription_medicine",
        })
        entry["prescriptionCount"] += 1
        entry["prescribers"].add(scheduler_id)

    medicines = []
    for entry in grouped.values():
        prescribers = entry.pop("prescribers")
        entry["prescribedBy"] = len(prescribers)
        entry["popularity"] = entry["prescriptionCount"]
        entry["category"] = medicine_category(entry["medicineName"])
        medicines.append(entry)
    medicines.sort(key=lambda m: m["popularity"], reverse=True)

    common = [
        m for m in COMMON_MEDICINES
        if term in m["medicineName"].lower() or term in m["category"].lower()
    ]
    all_results = medicines + common
    total = len(all_results)

    return {
        "query": term,
        "total": total,
        "medicines": all_results[offset:offset + limit],
        "categories": sorted({m["category"] for m in all_results}),
        "pagination": {"limit": limit, "offset": offset, "hasMore": offset + limit < total},
    }


@router.get("/providers")
def search_providers_by_location(
    city: str = None,
    state: str = None,
    type: str = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    if not city and not state:
        raise HTTPException(status_code=400, detail="City or state is required")
    if type and type not in SEARCHABLE:
        raise HTTPException(status_code=400, detail=f"Invalid type: {type}")

    results = {}
    for key, (model, schema, kind, _) in SEARCHABLE.items():
        if type and type != key:
            continue
        rows = db.query(model).filter(
            *_location_filters(model, city, state)
        ).order_by(model.reward_points.desc()).limit(limit).all()
        results[key] = [_result(row, schema, kind) for row in rows]

    return {
        "location": {"city": city, "state": state},
        "total": sum(len(v) for v in results.values()),
        "results": results,
    }


@router.get("/trending")
def get_trending(db: Session = Depends(get_db)):
    specializations = db.query(Doctor.specialization, func.count(Doctor.id).label("count")).filter(
        Doctor.verification_status == VerificationStatus.VERIFIED
    ).group_by(Doctor.specialization).order_by(func.count(Doctor.id).desc()).limit(10).all()

    cities = db.query(Doctor.city, func.count(Doctor.id).label("count")).filter(
        Doctor.verification_status == VerificationStatus.VERIFIED
    ).group_by(Doctor.city).order_by(func.count(Doctor.id).desc()).limit(10).all()

    medicines = db.query(
        ScheduledMedicineItem.medicine_name,
        func.count(ScheduledMedicineItem.id).label("count")
    ).group_by(ScheduledMedicineItem.medicine_name).order_by(
        func.count(ScheduledMedicineItem.id).desc()
    ).limit(15).all()

    return {
        "trending": {
            "specializations": [{"name": name, "count": count} for name, count in specializations],
            "cities": [{"name": name, "count": count} for name, count in cities],
            "medicines": [{"name": name, "count": count} for name, count in medicines],
        },
        "suggestions": SUGGESTIONS,
    }
