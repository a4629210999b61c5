"""
Patient-controlled consent overrides.

A patient with an active record may revoke (and later restore) a specific
doctor's ability to update and view their record. Revocation applies on top
of role authorization and two-factor checks.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from medregistry.models.registry import ConsentRevocation, MedicalRecord
from medregistry.services.audit import log_action
from medregistry.services.errors import ErrorKind, RegistryError

logger = logging.getLogger(__name__)


def is_revoked(db: Session, patient_id: str, doctor_id: str) -> bool:
    entry = db.get(ConsentRevocation, (patient_id, doctor_id))
    return entry is not None and entry.revoked


def _set_revocation(db: Session, caller: str, doctor_id: str, revoked: bool) -> ConsentRevocation:
    record = db.get(MedicalRecord, caller)
    if record is None or not record.is_active:
        raise RegistryError(
            ErrorKind.PRECONDITION_FAILED,
            "Consent can only be managed by a patient with an active record",
            patient=caller,
        )

    entry = db.get(ConsentRevocation, (caller, doctor_id))
    if entry is None:
        entry = ConsentRevocation(patient_identity=caller, doctor_identity=doctor_id)
        db.add(entry)
    entry.revoked = revoked
    db.flush()

    log_action(
        db,
        actor=caller,
        action="ConsentRevoked" if revoked else "ConsentRestored",
        resource_type="Consent",
        resource_id=f"{caller}:{doctor_id}",
        detail={"patient": caller, "doctor": doctor_id},
    )
    return entry


def revoke_consent(db: Session, caller: str, doctor_id: str) -> ConsentRevocation:
    return _set_revocation(db, caller, doctor_id, revoked=True)


def restore_consent(db: Session, caller: str, doctor_id: str) -> ConsentRevocation:
    return _set_revocation(db, caller, doctor_id, revoked=False)
