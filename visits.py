import logging
from datetime import datetime

from sqlalchemy.dialects import postgresql, sqlite

from models import CheckupCenterNextVisit, DoctorNextVisit, new_id

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _insert_for(db, model):
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect](model)
    except KeyError:
        raise RuntimeError(f"Next-visit upsert is not supported on {dialect}") from None


def _upsert(db, model, provider_column, provider_id, patient_id, next_visit):
    now = datetime.utcnow()
    stmt = _insert_for(db, model).values(
        id=new_id(),
        patient_id=patient_id,
        next_visit=next_visit,
        created_at=now,
        updated_at=now,
        **{provider_column: provider_id}
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[provider_column, "patient_id"],
        set_={"next_visit": stmt.excluded.next_visit, "updated_at": now},
    )
    db.execute(stmt)
    db.commit()

    visit = db.query(model).filter(
        getattr(model, provider_column) == provider_id,
        model.patient_id == patient_id
    ).one()
    db.refresh(visit)
    logger.info("Next visit for patient %s with %s %s set to %s", patient_id, provider_column, provider_id, next_visit)
    return visit


def upsert_doctor_next_visit(db, doctor_id, patient_id, next_visit):
    return _upsert(db, DoctorNextVisit, "doctor_id", doctor_id, patient_id, next_visit)


def upsert_checkup_center_next_visit(db, checkup_center_id, patient_id, next_visit):
    return _upsert(db, CheckupCenterNextVisit, "checkup_center_id", checkup_center_id, patient_id, next_visit)
