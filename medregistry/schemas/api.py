"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from medregistry.models.registry import ContractState, GatedOperation, VerificationStatus


# ---------------------------------------------------------------------------
# Registry & roles
# ---------------------------------------------------------------------------

class RegistryStatus(BaseModel):
    state: ContractState
    admin: str
    owner: str
    funding_balance: int


class DoctorResponse(BaseModel):
    doctor_id: str
    authorized: bool
    activation_privilege: bool


# ---------------------------------------------------------------------------
# Two-factor verification
# ---------------------------------------------------------------------------

class CheckRequest(BaseModel):
    """Ask the oracle to verify the caller before one gated operation."""
    customer_id: str = Field(..., min_length=1, max_length=128)
    hashed_pin: str = Field(..., min_length=1)
    patient_id: str = Field(..., min_length=1, max_length=128)
    operation: GatedOperation


class CheckResponse(BaseModel):
    request_id: str
    status: VerificationStatus
    operation: GatedOperation
    patient_id: str
    expires_at: datetime


class FulfillmentRequest(BaseModel):
    """Oracle callback payload."""
    request_id: str = Field(..., min_length=1)
    allowed: bool


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class RecordCreate(BaseModel):
    name: str = Field(..., min_length=1)
    diagnosis: str = Field(..., min_length=1)


class RecordUpdate(BaseModel):
    diagnosis: str = Field(..., min_length=1)


class RecordResponse(BaseModel):
    patient_id: str
    patient_name: str
    diagnosis: str
    date_added: datetime
    is_active: bool


# ---------------------------------------------------------------------------
# Consent
# ---------------------------------------------------------------------------

class ConsentResponse(BaseModel):
    patient_id: str
    doctor_id: str
    revoked: bool


# ---------------------------------------------------------------------------
# Platform account
# ---------------------------------------------------------------------------

class FundingDeposit(BaseModel):
    amount: int = Field(..., gt=0)


class FundingResponse(BaseModel):
    amount: int
    funding_balance: int


class OwnershipTransfer(BaseModel):
    new_owner: str = Field(..., min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "healthy"
    environment: str
    database: str = "connected"
