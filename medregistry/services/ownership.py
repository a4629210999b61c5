"""
Platform-account capabilities, separate from the admin role.

The owner can hand the account to someone else and drain the funding balance
that pays oracle fees. Anyone may top the balance up. None of this touches
the admin identity.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from medregistry.models.registry import RegistryState
from medregistry.services.audit import log_action
from medregistry.services.errors import ErrorKind, RegistryError
from medregistry.services.lifecycle import get_registry

logger = logging.getLogger(__name__)


def require_owner(db: Session, caller: str) -> RegistryState:
    registry = get_registry(db)
    if caller != registry.owner_identity:
        raise RegistryError(ErrorKind.UNAUTHORIZED, "Caller is not the platform owner", caller=caller)
    return registry


def transfer_ownership(db: Session, caller: str, new_owner: str) -> RegistryState:
    registry = require_owner(db, caller)
    if not new_owner:
        raise RegistryError(ErrorKind.PRECONDITION_FAILED, "New owner must be a valid identity")

    registry.owner_identity = new_owner
    log_action(
        db,
        actor=caller,
        action="OwnershipTransferred",
        resource_type="Registry",
        resource_id=str(registry.id),
        detail={"previous_owner": caller, "new_owner": new_owner},
    )
    return registry


def deposit_funding(db: Session, caller: str, amount: int) -> RegistryState:
    if amount <= 0:
        raise RegistryError(ErrorKind.PRECONDITION_FAILED, "Deposit must be positive", amount=amount)

    registry = get_registry(db)
    registry.funding_balance += amount
    log_action(
        db,
        actor=caller,
        action="FundsDeposited",
        resource_type="Registry",
        resource_id=str(registry.id),
        detail={"from": caller, "amount": amount},
    )
    return registry


def withdraw_funding(db: Session, caller: str) -> int:
    """Drain the whole funding balance to the owner. Returns the amount."""
    registry = require_owner(db, caller)
    amount = registry.funding_balance
    registry.funding_balance = 0
    log_action(
        db,
        actor=caller,
        action="FundsWithdrawn",
        resource_type="Registry",
        resource_id=str(registry.id),
        detail={"to": caller, "amount": amount},
    )
    logger.info("Withdrew %d funding units to %s", amount, caller)
    return amount
