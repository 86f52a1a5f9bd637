import os
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# --------------------------------------------------
# ENVIRONMENT
# --------------------------------------------------

APP_ENV = os.getenv("APP_ENV") or os.getenv("NODE_ENV", "development")
PORT = int(os.getenv("PORT", "9001"))


def _normalize_database_url(url):
    if url and url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


DATABASE_URL = _normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./healthcare.db"))
DIRECT_URL = _normalize_database_url(os.getenv("DIRECT_URL"))

# --------------------------------------------------
# JWT
# --------------------------------------------------

JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    JWT_SECRET = "dev-secret-change-me"
    logger.warning("JWT_SECRET is not set, using the development secret")

JWT_ALGORITHM = "HS256"
JWT_EXPIRES_IN = os.getenv("JWT_EXPIRES_IN", "7d")

# --------------------------------------------------
# UPLOADS / CORS
# --------------------------------------------------

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@platform.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
