"""Tests for ownership transfer and the oracle funding balance."""

import pytest

from helpers import ADMIN, DOCTOR, OWNER, STRANGER
from medregistry.models.registry import AuditLog
from medregistry.services import lifecycle, ownership
from medregistry.services.errors import ErrorKind, RegistryError


def test_owner_is_distinct_from_admin(db):
    registry = lifecycle.get_registry(db)
    assert registry.owner_identity == OWNER
    assert registry.admin_identity == ADMIN


def test_deposit_and_withdraw(db):
    ownership.deposit_funding(db, STRANGER, 30)
    ownership.deposit_funding(db, DOCTOR, 12)
    assert lifecycle.get_registry(db).funding_balance == 42

    assert ownership.withdraw_funding(db, OWNER) == 42
    assert lifecycle.get_registry(db).funding_balance == 0

    event = db.query(AuditLog).filter_by(action="FundsWithdrawn").one()
    assert event.detail == {"to": OWNER, "amount": 42}


@pytest.mark.parametrize("amount", [0, -5])
def test_deposit_must_be_positive(db, amount):
    with pytest.raises(RegistryError) as exc_info:
        ownership.deposit_funding(db, DOCTOR, amount)
    assert exc_info.value.kind is ErrorKind.PRECONDITION_FAILED


@pytest.mark.parametrize("caller", [ADMIN, DOCTOR, STRANGER])
def test_withdraw_is_owner_only(db, caller):
    ownership.deposit_funding(db, STRANGER, 10)
    with pytest.raises(RegistryError) as exc_info:
        ownership.withdraw_funding(db, caller)
    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
    assert lifecycle.get_registry(db).funding_balance == 10


def test_transfer_ownership(db):
    ownership.transfer_ownership(db, OWNER, STRANGER)
    registry = lifecycle.get_registry(db)
    assert registry.owner_identity == STRANGER
    assert registry.admin_identity == ADMIN

    with pytest.raises(RegistryError) as exc_info:
        ownership.withdraw_funding(db, OWNER)
    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
    assert ownership.withdraw_funding(db, STRANGER) == 0


def test_transfer_requires_owner_and_target(db):
    with pytest.raises(RegistryError) as exc_info:
        ownership.transfer_ownership(db, ADMIN, STRANGER)
    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED

    with pytest.raises(RegistryError) as exc_info:
        ownership.transfer_ownership(db, OWNER, "")
    assert exc_info.value.kind is ErrorKind.PRECONDITION_FAILED
