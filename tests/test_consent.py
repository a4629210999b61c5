"""Tests for patient consent overrides."""

import pytest

from helpers import ADMIN, DOCTOR, PATIENT, STRANGER
from medregistry.models.registry import AuditLog, GatedOperation
from medregistry.services import access_control, consent, records
from medregistry.services.errors import ErrorKind, RegistryError


@pytest.fixture
def alice(db, active_registry, approve):
    approve(DOCTOR, PATIENT, GatedOperation.ADD_RECORD)
    return records.add_record(db, DOCTOR, PATIENT, "Alice", "flu")


def test_default_is_consent_granted(db, alice):
    assert not consent.is_revoked(db, PATIENT, DOCTOR)


def test_revoke_and_restore(db, alice):
    consent.revoke_consent(db, PATIENT, DOCTOR)
    assert consent.is_revoked(db, PATIENT, DOCTOR)

    consent.restore_consent(db, PATIENT, DOCTOR)
    assert not consent.is_revoked(db, PATIENT, DOCTOR)

    actions = [e.action for e in db.query(AuditLog).filter(AuditLog.resource_type == "Consent")]
    assert sorted(actions) == ["ConsentRestored", "ConsentRevoked"]


def test_revoke_is_scoped_to_the_calling_patient(db, alice):
    consent.revoke_consent(db, PATIENT, DOCTOR)
    assert not consent.is_revoked(db, STRANGER, DOCTOR)


def test_revoke_requires_a_record(db, active_registry):
    with pytest.raises(RegistryError) as exc_info:
        consent.revoke_consent(db, STRANGER, DOCTOR)
    assert exc_info.value.kind is ErrorKind.PRECONDITION_FAILED


def test_revoke_requires_an_active_record(db, alice, approve):
    access_control.grant_activation_privilege(db, ADMIN, DOCTOR)
    approve(DOCTOR, PATIENT, GatedOperation.DEACTIVATE_RECORD)
    records.deactivate_record(db, DOCTOR, PATIENT)

    for operation in (consent.revoke_consent, consent.restore_consent):
        with pytest.raises(RegistryError) as exc_info:
            operation(db, PATIENT, DOCTOR)
        assert exc_info.value.kind is ErrorKind.PRECONDITION_FAILED
