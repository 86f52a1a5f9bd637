import logging
import random
import re
from datetime import datetime, timedelta

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import JWT_ALGORITHM, JWT_EXPIRES_IN, JWT_SECRET
from models import Role
from schemas import CurrentUser

logger = logging.getLogger(__name__)

# --------------------------------------------------
# PASSWORD HASHING
# --------------------------------------------------

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str):
    return pwd_context.hash(password)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


# --------------------------------------------------
# USER HANDLES
# --------------------------------------------------

def generate_user_id(name: str):
    """Readable handle such as ``jd_48213``; uniqueness is not guaranteed."""
    initials = "".join(part[0] for part in name.split() if part).lower() or "u"
    return f"{initials}_{random.randint(10000, 99999)}"


# --------------------------------------------------
# JWT
# --------------------------------------------------

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "": "seconds"}


def parse_expires_in(value):
    match = _DURATION_RE.match(str(value))
    if not match:
        logger.warning("Unrecognised JWT_EXPIRES_IN %r, falling back to 7d", value)
        return timedelta(days=7)
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def create_access_token(data: dict, expires_in=None):
    to_encode = data.copy()
    expire = datetime.utcnow() + parse_expires_in(expires_in or JWT_EXPIRES_IN)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str):
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def token_for(account):
    return create_access_token(
        data={
            "id": account.id,
            "role": account.role.value,
            "verificationStatus": account.verification_status.value,
        }
    )


# --------------------------------------------------
# AUTH DEPENDENCIES
# --------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)


def current_user_from_payload(payload):
    if not payload or "id" not in payload:
        return None
    try:
        role = Role(payload.get("role"))
    except ValueError:
        return None
    return CurrentUser(
        user_id=payload["id"],
        role=role,
        verification_status=payload.get("verificationStatus", "PENDING"),
    )


def authenticate(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)):
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required")

    user = current_user_from_payload(verify_token(credentials.credentials))
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return user


def authorize(*roles):
    allowed = set(roles)

    def checker(user: CurrentUser = Depends(authenticate)):
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return checker


authorize_admin = authorize(Role.ADMIN)


def ensure_self_or_admin(user: CurrentUser, account_id: str):
    if user.role != Role.ADMIN and user.user_id != account_id:
        raise HTTPException(status_code=403, detail="You can only access your own account")
