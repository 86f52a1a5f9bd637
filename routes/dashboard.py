import logging
import os

from fastapi import APIRouter, Cookie, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from database import get_db
from models import Admin, Role
from routes.admin import VERIFIABLE_ENTITIES, document_stats, pending_verifications, set_verification_status
from security import current_user_from_payload, token_for, verify_password, verify_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])

templates = Jinja2Templates(
    directory=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "templates")
)


# ---------------- AUTH DEPENDENCY ---------------- #

def get_dashboard_admin(access_token: str = Cookie(None)):
    if not access_token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = current_user_from_payload(verify_token(access_token))
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    if user.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")

    return user


# ---------------- LOGIN ---------------- #

@router.get("/admin/login", response_class=HTMLResponse)
def login_page(request: Request, error: str = None):
    return templates.TemplateResponse(request, "login.html", {"error": error})


@router.post("/admin/login")
def login(
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db)
):
    admin = db.query(Admin).filter(Admin.email == email.strip().lower()).first()

    if not admin or not verify_password(password, admin.password):
        return RedirectResponse(url="/admin/login?error=1", status_code=302)

    response = RedirectResponse(url="/admin/dashboard", status_code=302)
    response.set_cookie(
        key="access_token",
        value=token_for(admin),
        httponly=True,
        samesite="lax",
        path="/"
    )
    logger.info("Dashboard login for admin %s", admin.id)
    return response


# ---------------- DASHBOARD ---------------- #

@router.get("/admin/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    updated: str = None,
    user=Depends(get_dashboard_admin),
    db: Session = Depends(get_db)
):
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "stats": document_stats(db),
            "pending": pending_verifications(db),
            "entity_types": list(VERIFIABLE_ENTITIES),
            "updated": updated,
        }
    )


@router.post("/admin/verify")
def verify_entity(
    entity_type: str = Form(...),
    entity_id: str = Form(...),
    status: str = Form(...),
    user=Depends(get_dashboard_admin),
    db: Session = Depends(get_db)
):
    set_verification_status(db, entity_type, entity_id, status.strip().upper())
    return RedirectResponse(url="/admin/dashboard?updated=1", status_code=302)


# ---------------- LOGOUT ---------------- #

@router.get("/logout")
def logout():
    response = RedirectResponse(url="/admin/login", status_code=302)
    response.delete_cookie("access_token", path="/")
    return response
