import logging

from sqlalchemy.orm import sessionmaker

from config import ADMIN_EMAIL, ADMIN_PASSWORD, DIRECT_URL
from database import Base, SessionLocal, build_engine, engine as default_engine
from models import Account, Admin
from rewards import seed_default_settings
from security import generate_user_id, hash_password

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def seed(db):
    exists = db.query(Account).filter(Account.email == ADMIN_EMAIL.lower()).first()
    if not exists:
        db.add(Admin(
            user_id=generate_user_id("Admin User"),
            name="Admin User",
            email=ADMIN_EMAIL.lower(),
            password=hash_password(ADMIN_PASSWORD),
            phone="0000000000",
        ))
        db.commit()
        logger.info("Default admin %s created", ADMIN_EMAIL)
    else:
        logger.info("Admin %s already exists, skipping", ADMIN_EMAIL)

    seed_default_settings(db)
    logger.info("Default reward settings ensured")


if __name__ == "__main__":
    if DIRECT_URL:
        engine = build_engine(DIRECT_URL)
        session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    else:
        engine = default_engine
        session_factory = SessionLocal

    Base.metadata.create_all(bind=engine)

    db = session_factory()
    try:
        seed(db)
    finally:
        db.close()

    print("Default users created successfully.")
