import logging

from models import Account, DocumentPermission, Role

logger = logging.getLogger(__name__)

GRANTABLE_ROLES = (Role.DOCTOR, Role.CHECKUP_CENTER)


def can_view_document(document, user_id, role):
    """Visibility is the union of ownership, subject patient and allow-list membership."""
    if document.uploaded_by_id == user_id:
        return True
    if role == Role.PATIENT and document.patient_id == user_id:
        return True
    if role in GRANTABLE_ROLES:
        return user_id in document.permitted_ids(role)
    return False


def can_modify_document(document, user_id, role):
    if document.uploaded_by_id == user_id:
        return True
    return role == Role.PATIENT and document.patient_id == user_id


def is_subject_patient(document, user_id, role):
    return role == Role.PATIENT and document.patient_id == user_id


def visible_documents(documents, user_id, role):
    return [d for d in documents if can_view_document(d, user_id, role)]


def grantee_exists(db, grantee_role, grantee_id):
    return db.query(Account.id).filter(
        Account.id == grantee_id,
        Account.role == grantee_role
    ).first() is not None


def grant_permission(document, grantee_role, grantee_id):
    """Adds a permission row unless one already exists; returns True when a row was added."""
    if grantee_id in document.permitted_ids(grantee_role):
        return False

    document.permissions.append(
        DocumentPermission(grantee_role=grantee_role, grantee_id=grantee_id)
    )
    logger.info("Granted %s %s access to document %s", grantee_role.value, grantee_id, document.id)
    return True


def revoke_permission(document, grantee_role, grantee_id):
    removed = False
    for permission in list(document.permissions):
        if permission.grantee_role == grantee_role and permission.grantee_id == grantee_id:
            document.permissions.remove(permission)
            removed = True

    if removed:
        logger.info("Revoked %s %s access to document %s", grantee_role.value, grantee_id, document.id)
    return removed


def replace_permissions(document, grantee_role, grantee_ids):
    wanted = list(dict.fromkeys(grantee_ids))
    for grantee_id in document.permitted_ids(grantee_role):
        if grantee_id not in wanted:
            revoke_permission(document, grantee_role, grantee_id)
    for grantee_id in wanted:
        grant_permission(document, grantee_role, grantee_id)
