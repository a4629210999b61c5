"""
FastAPI routes – the registry's HTTP surface.

Each route resolves the caller, runs one core operation and commits. Core
operations raise `RegistryError` before mutating anything; the session is
then closed uncommitted and the error handler in `main` renders the failure.
The one exception is `request_check`, which commits its pending grant itself
before contacting the oracle.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Path
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medregistry.config import settings
from medregistry.models.database import get_db
from medregistry.models.registry import DoctorRole, RegistryState, VerificationRequest, as_utc
from medregistry.schemas.api import (
    CheckRequest,
    CheckResponse,
    ConsentResponse,
    DoctorResponse,
    FulfillmentRequest,
    FundingDeposit,
    FundingResponse,
    HealthResponse,
    OwnershipTransfer,
    RecordCreate,
    RecordResponse,
    RecordUpdate,
    RegistryStatus,
)
from medregistry.services import access_control, consent, lifecycle, ownership, records, two_factor
from medregistry.services.oracle import OracleClient, get_oracle_client

logger = logging.getLogger(__name__)

router = APIRouter()

# Identity columns are String(128).
DoctorId = Annotated[str, Path(min_length=1, max_length=128)]
PatientId = Annotated[str, Path(min_length=1, max_length=128)]
RequestId = Annotated[str, Path(min_length=1, max_length=128)]


def get_caller(x_caller_identity: str = Header(default="")) -> str:
    """Identity authenticated by the fronting gateway."""
    caller = x_caller_identity.strip()
    if not caller:
        raise HTTPException(status_code=401, detail="Missing X-Caller-Identity header")
    return caller


def _registry_status(registry: RegistryState) -> RegistryStatus:
    return RegistryStatus(
        state=registry.state,
        admin=registry.admin_identity,
        owner=registry.owner_identity,
        funding_balance=registry.funding_balance,
    )


def _doctor_response(doctor_id: str, role: DoctorRole | None) -> DoctorResponse:
    return DoctorResponse(
        doctor_id=doctor_id,
        authorized=role is not None,
        activation_privilege=role is not None and role.activation_privilege,
    )


def _check_response(request: VerificationRequest) -> CheckResponse:
    return CheckResponse(
        request_id=request.request_id,
        status=request.status,
        operation=request.operation,
        patient_id=request.patient_identity,
        expires_at=as_utc(request.expires_at),
    )


def _record_response(view: records.RecordView) -> RecordResponse:
    return RecordResponse(
        patient_id=view.patient_id,
        patient_name=view.patient_name,
        diagnosis=view.diagnosis,
        date_added=view.date_added,
        is_active=view.is_active,
    )


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """Basic health endpoint – verifies DB connectivity."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database")
        db_status = "disconnected"
    return HealthResponse(
        status="healthy",
        environment=settings.ENVIRONMENT,
        database=db_status,
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@router.get("/registry", response_model=RegistryStatus)
def registry_status(db: Session = Depends(get_db)):
    registry = lifecycle.get_registry(db)
    db.commit()
    return _registry_status(registry)


@router.post("/registry/activate", response_model=RegistryStatus)
def activate_registry(caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    registry = lifecycle.activate_contract(db, caller)
    db.commit()
    return _registry_status(registry)


@router.post("/registry/deactivate", response_model=RegistryStatus)
def deactivate_registry(caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    registry = lifecycle.deactivate_contract(db, caller)
    db.commit()
    return _registry_status(registry)


# ---------------------------------------------------------------------------
# Doctor roles (admin only)
# ---------------------------------------------------------------------------

@router.get("/doctors", response_model=list[DoctorResponse])
def list_doctors(db: Session = Depends(get_db)):
    return [_doctor_response(role.doctor_identity, role) for role in access_control.list_doctors(db)]


@router.put("/doctors/{doctor_id}", response_model=DoctorResponse)
def authorize_doctor(doctor_id: DoctorId, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    role = access_control.authorize_doctor(db, caller, doctor_id)
    db.commit()
    return _doctor_response(doctor_id, role)


@router.delete("/doctors/{doctor_id}", response_model=DoctorResponse)
def deauthorize_doctor(doctor_id: DoctorId, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    access_control.deauthorize_doctor(db, caller, doctor_id)
    db.commit()
    return _doctor_response(doctor_id, None)


@router.put("/doctors/{doctor_id}/activation-privilege", response_model=DoctorResponse)
def grant_activation_privilege(
    doctor_id: DoctorId, caller: str = Depends(get_caller), db: Session = Depends(get_db)
):
    role = access_control.grant_activation_privilege(db, caller, doctor_id)
    db.commit()
    return _doctor_response(doctor_id, role)


@router.delete("/doctors/{doctor_id}/activation-privilege", response_model=DoctorResponse)
def revoke_activation_privilege(
    doctor_id: DoctorId, caller: str = Depends(get_caller), db: Session = Depends(get_db)
):
    access_control.revoke_activation_privilege(db, caller, doctor_id)
    db.commit()
    return _doctor_response(doctor_id, db.get(DoctorRole, doctor_id))


# ---------------------------------------------------------------------------
# Two-factor verification
# ---------------------------------------------------------------------------

@router.post("/verification/requests", response_model=CheckResponse, status_code=202)
def request_check(
    body: CheckRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db),
    oracle: OracleClient = Depends(get_oracle_client),
):
    """Submit a check to the oracle; its fulfillment arrives asynchronously."""
    request = two_factor.request_check(
        db,
        oracle,
        caller,
        customer_id=body.customer_id,
        hashed_pin=body.hashed_pin,
        patient_id=body.patient_id,
        operation=body.operation,
    )
    db.commit()
    return _check_response(request)


@router.get("/verification/requests/{request_id}", response_model=CheckResponse)
def get_check(request_id: RequestId, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    return _check_response(two_factor.get_request(db, caller, request_id))


@router.post("/oracle/fulfill", response_model=CheckResponse)
def fulfill_check(
    body: FulfillmentRequest, caller: str = Depends(get_caller), db: Session = Depends(get_db)
):
    request = two_factor.fulfill(db, caller, body.request_id, body.allowed)
    db.commit()
    return _check_response(request)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@router.put("/records/{patient_id}", response_model=RecordResponse, status_code=201)
def add_record(
    patient_id: PatientId, body: RecordCreate, caller: str = Depends(get_caller), db: Session = Depends(get_db)
):
    view = records.add_record(db, caller, patient_id, body.name, body.diagnosis)
    db.commit()
    return _record_response(view)


@router.patch("/records/{patient_id}", response_model=RecordResponse)
def update_record(
    patient_id: PatientId, body: RecordUpdate, caller: str = Depends(get_caller), db: Session = Depends(get_db)
):
    view = records.update_record(db, caller, patient_id, body.diagnosis)
    db.commit()
    return _record_response(view)


@router.post("/records/{patient_id}/activate", response_model=RecordResponse)
def activate_record(patient_id: PatientId, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    view = records.activate_record(db, caller, patient_id)
    db.commit()
    return _record_response(view)


@router.post("/records/{patient_id}/deactivate", response_model=RecordResponse)
def deactivate_record(patient_id: PatientId, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    view = records.deactivate_record(db, caller, patient_id)
    db.commit()
    return _record_response(view)


@router.get("/records/{patient_id}", response_model=RecordResponse)
def view_record(patient_id: PatientId, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    return _record_response(records.view_record(db, caller, patient_id))


# ---------------------------------------------------------------------------
# Consent (the caller is the patient)
# ---------------------------------------------------------------------------

@router.post("/consents/{doctor_id}/revoke", response_model=ConsentResponse)
def revoke_consent(doctor_id: DoctorId, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    entry = consent.revoke_consent(db, caller, doctor_id)
    db.commit()
    return ConsentResponse(patient_id=caller, doctor_id=doctor_id, revoked=entry.revoked)


@router.post("/consents/{doctor_id}/restore", response_model=ConsentResponse)
def restore_consent(doctor_id: DoctorId, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    entry = consent.restore_consent(db, caller, doctor_id)
    db.commit()
    return ConsentResponse(patient_id=caller, doctor_id=doctor_id, revoked=entry.revoked)


# ---------------------------------------------------------------------------
# Platform account
# ---------------------------------------------------------------------------

@router.post("/funding/deposit", response_model=FundingResponse)
def deposit_funding(body: FundingDeposit, caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    registry = ownership.deposit_funding(db, caller, body.amount)
    db.commit()
    return FundingResponse(amount=body.amount, funding_balance=registry.funding_balance)


@router.post("/funding/withdraw", response_model=FundingResponse)
def withdraw_funding(caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    amount = ownership.withdraw_funding(db, caller)
    db.commit()
    return FundingResponse(amount=amount, funding_balance=0)


@router.post("/ownership/transfer", response_model=RegistryStatus)
def transfer_ownership(
    body: OwnershipTransfer, caller: str = Depends(get_caller), db: Session = Depends(get_db)
):
    registry = ownership.transfer_ownership(db, caller, body.new_owner)
    db.commit()
    return _registry_status(registry)
