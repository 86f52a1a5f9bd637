import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crud import create_account, get_or_404
from database import get_db
from models import Account, ROLE_MODELS, Role
from schemas import AccountOut, CurrentUser, LoginRequest, RegisterRequest
from security import authenticate, token_for, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

VALID_ROLES = ", ".join(role.value for role in Role)


def parse_role(value):
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid role specified: {value}. Valid roles are: {VALID_ROLES}"
        ) from None


# ---------------- LOGIN ---------------- #

@router.post("/login")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    account = db.query(Account).filter(Account.email == data.email.strip().lower()).first()

    if not account or not verify_password(data.password, account.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    logger.info("Login for %s %s", account.role.value, account.id)
    return {"token": token_for(account), "user": AccountOut.model_validate(account)}


# ---------------- REGISTER ---------------- #

@router.post("/register", status_code=201)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    role = parse_role(data.role)
    account = create_account(db, ROLE_MODELS[role], data)
    return {"token": token_for(account), "user": AccountOut.model_validate(account)}


# ---------------- ME ---------------- #

@router.get("/me")
def me(user: CurrentUser = Depends(authenticate), db: Session = Depends(get_db)):
    account = get_or_404(db, Account, user.user_id, "User")
    return {"user": AccountOut.model_validate(account)}
