"""Tests for the registry lifecycle state machine."""

import pytest

from helpers import ADMIN, DOCTOR, OWNER
from medregistry.models.registry import AuditLog, ContractState
from medregistry.services import lifecycle
from medregistry.services.errors import ErrorKind, RegistryError


def test_registry_starts_created(db):
    registry = lifecycle.get_registry(db)
    assert registry.state == ContractState.CREATED
    assert registry.admin_identity == ADMIN
    assert registry.owner_identity == OWNER
    assert registry.funding_balance == 0


def test_forward_transitions(db):
    lifecycle.activate_contract(db, ADMIN)
    assert lifecycle.get_registry(db).state == ContractState.ACTIVE

    lifecycle.deactivate_contract(db, ADMIN)
    assert lifecycle.get_registry(db).state == ContractState.INACTIVE

    actions = sorted(entry.action for entry in db.query(AuditLog))
    assert actions == ["ContractActivated", "ContractDeactivated"]


def test_deactivate_while_created_fails(db):
    with pytest.raises(RegistryError) as exc_info:
        lifecycle.deactivate_contract(db, ADMIN)
    assert exc_info.value.kind is ErrorKind.INVALID_LIFECYCLE_STATE
    assert lifecycle.get_registry(db).state == ContractState.CREATED


def test_activate_twice_fails(db):
    lifecycle.activate_contract(db, ADMIN)
    with pytest.raises(RegistryError) as exc_info:
        lifecycle.activate_contract(db, ADMIN)
    assert exc_info.value.kind is ErrorKind.INVALID_LIFECYCLE_STATE


def test_inactive_is_terminal(db):
    lifecycle.activate_contract(db, ADMIN)
    lifecycle.deactivate_contract(db, ADMIN)
    for transition in (lifecycle.activate_contract, lifecycle.deactivate_contract):
        with pytest.raises(RegistryError) as exc_info:
            transition(db, ADMIN)
        assert exc_info.value.kind is ErrorKind.INVALID_LIFECYCLE_STATE


@pytest.mark.parametrize("caller", [DOCTOR, OWNER, "anyone"])
def test_only_admin_transitions(db, caller):
    with pytest.raises(RegistryError) as exc_info:
        lifecycle.activate_contract(db, caller)
    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
    assert db.query(AuditLog).count() == 0


def test_missing_admin_configuration(db, monkeypatch):
    from medregistry.config import settings

    monkeypatch.setattr(settings, "ADMIN_IDENTITY", "")
    with pytest.raises(RuntimeError, match="ADMIN_IDENTITY"):
        lifecycle.get_registry(db)
