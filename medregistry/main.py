"""
FastAPI application entrypoint.

Run locally:  uvicorn medregistry.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from medregistry.api.routes import router
from medregistry.config import settings
from medregistry.models.database import Base, SessionLocal, engine
from medregistry.services import lifecycle
from medregistry.services.errors import ErrorKind, RegistryError
from medregistry.services.oracle import reset_oracle_client

logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.INVALID_LIFECYCLE_STATE: 409,
    ErrorKind.PRECONDITION_FAILED: 412,
    ErrorKind.RECORD_STATE_CONFLICT: 404,
    ErrorKind.ORACLE_UNAVAILABLE: 502,
}

app = FastAPI(
    title="Medical Record Registry API",
    description=(
        "Access-controlled medical record registry: admin-managed doctor roles, "
        "a Created/Active/Inactive lifecycle, patient consent overrides, and "
        "oracle-backed two-factor verification for every record mutation."
    ),
    version="1.0.0",
)

app.include_router(router, prefix="/api/v1")


@app.exception_handler(RegistryError)
def registry_error_handler(request: Request, exc: RegistryError):
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.kind.value, exc.message)
    return JSONResponse(status_code=ERROR_STATUS[exc.kind], content=exc.to_dict())


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    # The registry row exists before the first request is served.
    with SessionLocal() as db:
        lifecycle.get_registry(db)
        db.commit()


@app.on_event("shutdown")
def on_shutdown():
    reset_oracle_client()
