"""
Data models for the access-controlled medical record registry.

- Registry state: lifecycle, fixed admin, platform owner, funding balance
- Role assignments for doctors (activation privilege lives on the same row)
- Medical records with PHI columns encrypted at the application layer
- Per (patient, doctor) consent revocations
- Verification requests issued to the 2FA oracle, each a single-use grant
- Audit log, the append-only event stream
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)

from medregistry.models.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ContractState(str, enum.Enum):
    CREATED = "created"
    ACTIVE = "active"
    INACTIVE = "inactive"


class GatedOperation(str, enum.Enum):
    ADD_RECORD = "add_record"
    UPDATE_RECORD = "update_record"
    ACTIVATE_RECORD = "activate_record"
    DEACTIVATE_RECORD = "deactivate_record"


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    CONSUMED = "consumed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Registry state – a single row
# ---------------------------------------------------------------------------
class RegistryState(Base):
    __tablename__ = "registry_state"

    id = Column(Integer, primary_key=True, default=1)
    state = Column(
        Enum(ContractState, name="contract_state_enum"),
        default=ContractState.CREATED,
        nullable=False,
    )
    admin_identity = Column(String(128), nullable=False, comment="Fixed at initialization")
    owner_identity = Column(String(128), nullable=False, comment="Platform account owner")
    funding_balance = Column(Integer, default=0, nullable=False, comment="Pays oracle fees")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Doctor roles – row present means authorized
# ---------------------------------------------------------------------------
class DoctorRole(Base):
    __tablename__ = "doctor_roles"

    doctor_identity = Column(String(128), primary_key=True)
    activation_privilege = Column(Boolean, default=False, nullable=False)
    authorized_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Medical record – one per patient identity (contains PHI)
# ---------------------------------------------------------------------------
class MedicalRecord(Base):
    __tablename__ = "medical_records"

    patient_identity = Column(String(128), primary_key=True)
    encrypted_name = Column(Text, nullable=False, comment="Fernet-encrypted patient name")
    encrypted_diagnosis = Column(Text, nullable=False, comment="Fernet-encrypted diagnosis")
    date_added = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Consent revocation – absent row means consent granted
# ---------------------------------------------------------------------------
class ConsentRevocation(Base):
    __tablename__ = "consent_revocations"

    patient_identity = Column(String(128), primary_key=True)
    doctor_identity = Column(String(128), primary_key=True)
    revoked = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Verification request – correlates an oracle check with the grant it yields
# ---------------------------------------------------------------------------
class VerificationRequest(Base):
    __tablename__ = "verification_requests"

    request_id = Column(String(128), primary_key=True)
    requester_identity = Column(String(128), nullable=False)
    patient_identity = Column(String(128), nullable=False)
    operation = Column(Enum(GatedOperation, name="gated_operation_enum"), nullable=False)
    customer_id = Column(String(128), nullable=False)
    status = Column(
        Enum(VerificationStatus, name="verification_status_enum"),
        default=VerificationStatus.PENDING,
        nullable=False,
    )
    fee_paid = Column(Integer, default=0, nullable=False)
    requested_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    fulfilled_at = Column(DateTime(timezone=True), nullable=True)
    consumed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_verification_grant", "requester_identity", "patient_identity", "operation"),
    )


# ---------------------------------------------------------------------------
# Audit Log – append-only event stream
# ---------------------------------------------------------------------------
class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    actor = Column(String(128), nullable=False, comment="Caller identity")
    action = Column(String(64), nullable=False, comment="Event name, e.g. RecordAdded")
    resource_type = Column(String(64), nullable=False)
    resource_id = Column(String(128), nullable=False)
    detail = Column(JSON, comment="Identities and changed fields")
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (Index("ix_audit_timestamp", "timestamp"),)
