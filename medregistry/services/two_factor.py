"""
Two-factor gate backed by the external verification oracle.

Each check request becomes its own grant: it is bound to the requesting
doctor, one patient and one gated operation, and expires
PERMISSION_TTL_SECONDS after it was issued. The oracle's fulfillment
approves or denies it; a gated mutation consumes one matching approved
grant. A fulfillment therefore authorizes at most one mutation, and only the
one it was requested for.

Grants are looked up with `require_permission` and marked with
`consume_permission` only once the operation's remaining checks have passed,
so a rejected mutation leaves its grant usable.

`request_check` commits the pending grant before the job reaches the oracle,
so a fulfillment delivered while the submission is still in flight finds it.
If the submission fails the grant is marked failed and its fee refunded in a
second commit.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from medregistry.config import settings
from medregistry.models.registry import (
    ContractState,
    GatedOperation,
    RegistryState,
    VerificationRequest,
    VerificationStatus,
    as_utc,
    utcnow,
)
from medregistry.schemas.oracle import ORACLE_JOB_SCHEMA
from medregistry.services.access_control import require_authorized_doctor
from medregistry.services.audit import log_action
from medregistry.services.errors import ErrorKind, RegistryError
from medregistry.services.lifecycle import require_state
from medregistry.services.oracle import OracleClient, OracleError, build_job_spec
from medregistry.services.validation import validate_against_schema

logger = logging.getLogger(__name__)


def request_check(
    db: Session,
    oracle: OracleClient,
    caller: str,
    *,
    customer_id: str,
    hashed_pin: str,
    patient_id: str,
    operation: GatedOperation,
) -> VerificationRequest:
    """Record and commit a pending grant, then send its check to the oracle."""
    require_authorized_doctor(db, caller)
    registry = require_state(db, ContractState.ACTIVE)

    request_id = secrets.token_hex(32)
    job = build_job_spec(request_id, customer_id, hashed_pin, settings.ORACLE_CALLBACK_URL)
    errors = validate_against_schema(job, ORACLE_JOB_SCHEMA)
    if errors:
        raise RegistryError(ErrorKind.PRECONDITION_FAILED, "Invalid check request", errors=errors)

    fee = settings.ORACLE_FEE
    if registry.funding_balance < fee:
        raise RegistryError(
            ErrorKind.PRECONDITION_FAILED,
            "Insufficient funding to pay the oracle fee",
            fee=fee,
            balance=registry.funding_balance,
        )

    now = utcnow()
    request = VerificationRequest(
        request_id=request_id,
        requester_identity=caller,
        patient_identity=patient_id,
        operation=operation,
        customer_id=customer_id,
        status=VerificationStatus.PENDING,
        fee_paid=fee,
        requested_at=now,
        expires_at=now + timedelta(seconds=settings.PERMISSION_TTL_SECONDS),
    )
    db.add(request)
    registry.funding_balance -= fee
    db.flush()

    log_action(
        db,
        actor=caller,
        action="CheckRequested",
        resource_type="VerificationRequest",
        resource_id=request_id,
        detail={
            "requester": caller,
            "patient": patient_id,
            "operation": operation.value,
            "customerId": customer_id,
        },
    )
    db.commit()

    try:
        oracle.submit_check(job)
    except OracleError as exc:
        logger.error("Check request for %s failed: %s", caller, exc)
        _fail_request(db, request, registry, str(exc))
        raise RegistryError(ErrorKind.ORACLE_UNAVAILABLE, str(exc)) from exc
    return request


def _fail_request(
    db: Session, request: VerificationRequest, registry: RegistryState, reason: str
) -> None:
    request.status = VerificationStatus.FAILED
    registry.funding_balance += request.fee_paid
    log_action(
        db,
        actor=request.requester_identity,
        action="CheckFailed",
        resource_type="VerificationRequest",
        resource_id=request.request_id,
        detail={"reason": reason, "refunded": request.fee_paid},
    )
    db.commit()


def fulfill(db: Session, caller: str, request_id: str, allowed: bool) -> VerificationRequest:
    """Oracle callback: settle one pending request. Accepted once per request."""
    if not settings.ORACLE_IDENTITY or caller != settings.ORACLE_IDENTITY:
        raise RegistryError(ErrorKind.UNAUTHORIZED, "Caller is not the oracle", caller=caller)

    request = db.get(VerificationRequest, request_id)
    if request is None or request.status != VerificationStatus.PENDING:
        raise RegistryError(
            ErrorKind.PRECONDITION_FAILED,
            "No outstanding check request with this id",
            request_id=request_id,
        )

    now = utcnow()
    request.status = VerificationStatus.APPROVED if allowed else VerificationStatus.DENIED
    request.fulfilled_at = now
    if now >= as_utc(request.expires_at):
        logger.warning("Stale fulfillment for %s; the grant has already expired", request_id)

    log_action(
        db,
        actor=caller,
        action="CheckFulfilled",
        resource_type="VerificationRequest",
        resource_id=request_id,
        detail={
            "allowed": allowed,
            "requester": request.requester_identity,
            "patient": request.patient_identity,
            "operation": request.operation.value,
        },
    )
    return request


def get_request(db: Session, caller: str, request_id: str) -> VerificationRequest:
    request = db.get(VerificationRequest, request_id)
    if request is None or request.requester_identity != caller:
        raise RegistryError(
            ErrorKind.UNAUTHORIZED, "Not the requester of this check", request_id=request_id
        )
    return request


def require_permission(
    db: Session, caller: str, patient_id: str, operation: GatedOperation
) -> VerificationRequest:
    """Find the oldest approved, unexpired grant matching this call."""
    now = utcnow()
    candidates = db.scalars(
        select(VerificationRequest)
        .where(
            VerificationRequest.requester_identity == caller,
            VerificationRequest.patient_identity == patient_id,
            VerificationRequest.operation == operation,
            VerificationRequest.status == VerificationStatus.APPROVED,
        )
        .order_by(VerificationRequest.fulfilled_at, VerificationRequest.requested_at)
    )
    for grant in candidates:
        if as_utc(grant.expires_at) > now:
            return grant

    raise RegistryError(
        ErrorKind.UNAUTHORIZED,
        "Two-factor verification required",
        caller=caller,
        patient=patient_id,
        operation=operation.value,
    )


def consume_permission(db: Session, grant: VerificationRequest) -> None:
    grant.status = VerificationStatus.CONSUMED
    grant.consumed_at = utcnow()
    db.flush()
    logger.info("Grant %s consumed by %s", grant.request_id, grant.requester_identity)
