import logging
import math

from fastapi import HTTPException
from sqlalchemy import or_

from models import Account, Doctor
from security import generate_user_id, hash_password

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "email", "phone", "city", "state")
LIKE_ESCAPE = "\\"


# --------------------------------------------------
# LOOKUPS
# --------------------------------------------------

def get_or_404(db, model, object_id, label=None):
    obj = db.get(model, object_id)
    if obj is None:
        raise HTTPException(status_code=404, detail=f"{label or model.__name__} not found")
    return obj


def email_taken(db, email, exclude_id=None):
    query = db.query(Account.id).filter(Account.email == email.lower())
    if exclude_id:
        query = query.filter(Account.id != exclude_id)
    return query.first() is not None


# --------------------------------------------------
# PAGINATION / SEARCH
# --------------------------------------------------

def escape_like(term):
    return term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")


def contains_pattern(term):
    """``%term%`` with LIKE wildcards in ``term`` matched literally."""
    return f"%{escape_like(term)}%"


def ilike_any(columns, term):
    pattern = contains_pattern(term)
    return or_(*[column.ilike(pattern, escape=LIKE_ESCAPE) for column in columns])


def search_filter(model, search):
    columns = [getattr(model, field) for field in SEARCH_FIELDS]
    if model is Doctor:
        columns.append(Doctor.specialization)
    return ilike_any(columns, search)


def paginate(query, page, limit, serializer):
    page = max(page, 1)
    limit = max(limit, 1)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "data": [serializer(row) for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


def list_accounts(db, model, page, limit, search, serializer):
    query = db.query(model)
    if search:
        query = query.filter(search_filter(model, search))
    query = query.order_by(model.created_at.desc())
    return paginate(query, page, limit, serializer)


# --------------------------------------------------
# CREATE / UPDATE
# --------------------------------------------------

def create_account(db, model, data):
    """Creates a role profile plus its identity row; rejects emails already in use by any role."""
    if email_taken(db, data.email):
        raise HTTPException(status_code=400, detail="Email is already registered")

    fields = data.model_dump(exclude={"role", "password", "specialization"})
    fields["email"] = fields["email"].lower()
    if model is Doctor:
        fields["specialization"] = data.specialization

    account = model(
        user_id=generate_user_id(data.name),
        password=hash_password(data.password),
        **fields
    )
    db.add(account)
    db.commit()
    db.refresh(account)

    logger.info("Created %s account %s (%s)", account.role.value, account.id, account.user_id)
    return account


def update_account(db, account, data):
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes:
        changes["email"] = changes["email"].lower()
        if email_taken(db, changes["email"], exclude_id=account.id):
            raise HTTPException(status_code=400, detail="Email is already registered")

    if "password" in changes:
        changes["password"] = hash_password(changes["password"])

    if "specialization" in changes and not isinstance(account, Doctor):
        changes.pop("specialization")

    for field, value in changes.items():
        setattr(account, field, value)

    db.commit()
    db.refresh(account)
    return account


def delete_account(db, account):
    role, account_id = account.role, account.id
    db.delete(account)
    db.commit()
    logger.info("Deleted %s account %s", role.value, account_id)
