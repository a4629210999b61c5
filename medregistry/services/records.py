"""
Record store: one medical record per patient identity.

Every mutation runs the same gate sequence before touching anything:

    role -> lifecycle (Active) -> two-factor grant -> record state -> consent

and only then consumes the grant, writes the record and emits its audit
event. Names and diagnoses are encrypted before they reach the database, and
audit events carry the stored ciphertext rather than the plaintext.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from medregistry.models.registry import ContractState, GatedOperation, MedicalRecord, as_utc, utcnow
from medregistry.services import two_factor
from medregistry.services.access_control import (
    is_authorized_doctor,
    require_activation_privilege,
    require_authorized_doctor,
)
from medregistry.services.audit import log_action
from medregistry.services.consent import is_revoked
from medregistry.services.encryption import EncryptionService
from medregistry.services.errors import ErrorKind, RegistryError
from medregistry.services.lifecycle import is_admin, require_state

logger = logging.getLogger(__name__)

encryption = EncryptionService()


@dataclass
class RecordView:
    """Decrypted view of a stored record."""

    patient_id: str
    patient_name: str
    diagnosis: str
    date_added: datetime
    is_active: bool


def _to_view(record: MedicalRecord) -> RecordView:
    return RecordView(
        patient_id=record.patient_identity,
        patient_name=encryption.decrypt(record.encrypted_name),
        diagnosis=encryption.decrypt(record.encrypted_diagnosis),
        date_added=as_utc(record.date_added),
        is_active=record.is_active,
    )


def _record_conflict(patient_id: str, reason: str) -> RegistryError:
    logger.info("Record operation on %s rejected: %s", patient_id, reason)
    return RegistryError(ErrorKind.RECORD_STATE_CONFLICT, "Record not found", patient=patient_id)


def add_record(db: Session, caller: str, patient_id: str, name: str, diagnosis: str) -> RecordView:
    """Create the patient's record, replacing any existing one."""
    require_authorized_doctor(db, caller)
    require_state(db, ContractState.ACTIVE)
    grant = two_factor.require_permission(db, caller, patient_id, GatedOperation.ADD_RECORD)

    two_factor.consume_permission(db, grant)
    record = db.get(MedicalRecord, patient_id)
    if record is None:
        record = MedicalRecord(patient_identity=patient_id)
        db.add(record)
    else:
        logger.info("Overwriting existing record for %s", patient_id)
    record.encrypted_name = encryption.encrypt(name)
    record.encrypted_diagnosis = encryption.encrypt(diagnosis)
    record.date_added = utcnow()
    record.is_active = True
    db.flush()

    log_action(
        db,
        actor=caller,
        action="RecordAdded",
        resource_type="MedicalRecord",
        resource_id=patient_id,
        detail={"doctor": caller, "patient": patient_id, "name": record.encrypted_name},
    )
    return _to_view(record)


def update_record(db: Session, caller: str, patient_id: str, diagnosis: str) -> RecordView:
    require_authorized_doctor(db, caller)
    require_state(db, ContractState.ACTIVE)
    grant = two_factor.require_permission(db, caller, patient_id, GatedOperation.UPDATE_RECORD)

    record = db.get(MedicalRecord, patient_id)
    if record is None:
        raise _record_conflict(patient_id, "no record")
    if not record.is_active:
        raise _record_conflict(patient_id, "record is inactive")
    if is_revoked(db, patient_id, caller):
        raise RegistryError(
            ErrorKind.UNAUTHORIZED,
            "Patient has revoked consent for this doctor",
            patient=patient_id,
            doctor=caller,
        )

    two_factor.consume_permission(db, grant)
    record.encrypted_diagnosis = encryption.encrypt(diagnosis)
    db.flush()

    log_action(
        db,
        actor=caller,
        action="RecordUpdated",
        resource_type="MedicalRecord",
        resource_id=patient_id,
        detail={"doctor": caller, "patient": patient_id, "diagnosis": record.encrypted_diagnosis},
    )
    return _to_view(record)


def _set_active(db: Session, caller: str, patient_id: str, active: bool) -> RecordView:
    operation = GatedOperation.ACTIVATE_RECORD if active else GatedOperation.DEACTIVATE_RECORD
    require_activation_privilege(db, caller)
    require_state(db, ContractState.ACTIVE)
    grant = two_factor.require_permission(db, caller, patient_id, operation)

    record = db.get(MedicalRecord, patient_id)
    if record is None:
        raise _record_conflict(patient_id, "no record")
    if record.is_active == active:
        raise _record_conflict(patient_id, f"already {'active' if active else 'inactive'}")

    two_factor.consume_permission(db, grant)
    record.is_active = active
    db.flush()

    log_action(
        db,
        actor=caller,
        action="RecordActivated" if active else "RecordDeactivated",
        resource_type="MedicalRecord",
        resource_id=patient_id,
        detail={"doctor": caller, "patient": patient_id},
    )
    return _to_view(record)


def activate_record(db: Session, caller: str, patient_id: str) -> RecordView:
    return _set_active(db, caller, patient_id, active=True)


def deactivate_record(db: Session, caller: str, patient_id: str) -> RecordView:
    return _set_active(db, caller, patient_id, active=False)


def view_record(db: Session, caller: str, patient_id: str) -> RecordView:
    """Read a record: the patient, an unrevoked authorized doctor, or the admin."""
    permitted = (
        caller == patient_id
        or is_admin(db, caller)
        or (is_authorized_doctor(db, caller) and not is_revoked(db, patient_id, caller))
    )
    if not permitted:
        raise RegistryError(ErrorKind.UNAUTHORIZED, "Not permitted to view this record", caller=caller)

    record = db.get(MedicalRecord, patient_id)
    if record is None:
        raise _record_conflict(patient_id, "no record")
    logger.info("Record %s read by %s", patient_id, caller)
    return _to_view(record)
