"""
Registry lifecycle: Created -> Active -> Inactive.

Transitions only move forward and never skip Active. Operations that need a
particular state call `require_state`; the admin-only gate lives here too
since every lifecycle and role operation shares it.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from medregistry.config import settings
from medregistry.models.registry import ContractState, RegistryState
from medregistry.services.audit import log_action
from medregistry.services.errors import ErrorKind, RegistryError

logger = logging.getLogger(__name__)

REGISTRY_ROW_ID = 1


def get_registry(db: Session) -> RegistryState:
    """Load the registry row, initializing it on first use."""
    registry = db.get(RegistryState, REGISTRY_ROW_ID)
    if registry is not None:
        return registry

    if not settings.ADMIN_IDENTITY:
        raise RuntimeError("ADMIN_IDENTITY must be configured")
    registry = RegistryState(
        id=REGISTRY_ROW_ID,
        state=ContractState.CREATED,
        admin_identity=settings.ADMIN_IDENTITY,
        owner_identity=settings.PLATFORM_OWNER or settings.ADMIN_IDENTITY,
        funding_balance=0,
    )
    db.add(registry)
    db.flush()
    logger.info("Initialized registry (admin=%s)", registry.admin_identity)
    return registry


def is_admin(db: Session, caller: str) -> bool:
    return caller == get_registry(db).admin_identity


def require_admin(db: Session, caller: str) -> RegistryState:
    registry = get_registry(db)
    if caller != registry.admin_identity:
        raise RegistryError(ErrorKind.UNAUTHORIZED, "Caller is not the administrator", caller=caller)
    return registry


def require_state(db: Session, expected: ContractState) -> RegistryState:
    registry = get_registry(db)
    if registry.state != expected:
        raise RegistryError(
            ErrorKind.INVALID_LIFECYCLE_STATE,
            f"Registry must be {expected.value}",
            expected=expected.value,
            actual=registry.state.value,
        )
    return registry


def _transition(db: Session, caller: str, source: ContractState, target: ContractState, event: str) -> RegistryState:
    require_admin(db, caller)
    registry = require_state(db, source)
    registry.state = target
    log_action(
        db,
        actor=caller,
        action=event,
        resource_type="Registry",
        resource_id=str(registry.id),
        detail={"from": source.value, "to": target.value},
    )
    return registry


def activate_contract(db: Session, caller: str) -> RegistryState:
    return _transition(db, caller, ContractState.CREATED, ContractState.ACTIVE, "ContractActivated")


def deactivate_contract(db: Session, caller: str) -> RegistryState:
    return _transition(db, caller, ContractState.ACTIVE, ContractState.INACTIVE, "ContractDeactivated")
