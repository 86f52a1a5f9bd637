import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError, NoResultFound
from starlette.exceptions import HTTPException as StarletteHTTPException

import models
from config import APP_ENV, CORS_ORIGINS, PORT, UPLOAD_DIR
from database import engine
from routes import (
    admin,
    appointments,
    auth,
    checkup_centers,
    clinics,
    compounders,
    dashboard,
    doctors,
    global_medicine,
    home,
    hospitals,
    med_documents,
    medicine_reminders,
    medicine_schedules,
    medstores,
    patients,
    prescriptions,
    reviews,
    rewards,
    search,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# --------------------------------------------------
# APP SETUP
# --------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    models.Base.metadata.create_all(bind=engine)
    logger.info("Healthcare API started (%s)", APP_ENV)
    yield


app = FastAPI(title="Healthcare Coordination API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=os.path.join(BASE_DIR, "static")), name="static")
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")

for module in (
    auth,
    doctors,
    patients,
    hospitals,
    clinics,
    medstores,
    checkup_centers,
    compounders,
    reviews,
    med_documents,
    medicine_schedules,
    medicine_reminders,
    rewards,
    admin,
    appointments,
    home,
    search,
    prescriptions,
    global_medicine,
    dashboard,
):
    app.include_router(module.router)

# --------------------------------------------------
# REQUEST LOGGING
# --------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    auth_state = "Has Auth" if request.headers.get("authorization") else "No Auth"
    logger.info("%s %s - %s", request.method, request.url.path, auth_state)
    return await call_next(request)

# --------------------------------------------------
# ERROR HANDLERS
# --------------------------------------------------

def is_dashboard_path(request: Request):
    path = request.url.path
    return path.startswith("/admin") or path == "/logout"


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc):
    if exc.status_code in (401, 403) and is_dashboard_path(request):
        return dashboard.templates.TemplateResponse(
            request,
            f"{exc.status_code}.html",
            {},
            status_code=exc.status_code
        )

    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc):
    details = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


@app.exception_handler(NoResultFound)
def not_found_handler(request: Request, exc):
    return JSONResponse(status_code=404, content={"error": "Record not found"})


@app.exception_handler(IntegrityError)
def integrity_error_handler(request: Request, exc):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content={"error": "Resource already exists"})


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Something went wrong!"})

# --------------------------------------------------
# HEALTH
# --------------------------------------------------

@app.get("/")
def root():
    return {"message": "Healthcare Coordination API is running"}


@app.get("/health")
def health():
    return {"status": "ok", "environment": APP_ENV}


@app.get("/api/ping")
def ping():
    return {"message": "pong"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=PORT, reload=APP_ENV == "development")
