"""
Doctor role management.

Two role sets: authorized doctors, and the subset of them holding the
activation privilege. A `DoctorRole` row exists exactly for authorized
doctors and carries the privilege flag, so deauthorizing (deleting the row)
drops both roles in one step.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from medregistry.models.registry import ContractState, DoctorRole
from medregistry.services.audit import log_action
from medregistry.services.errors import ErrorKind, RegistryError
from medregistry.services.lifecycle import require_admin, require_state

logger = logging.getLogger(__name__)


def _require_admin_while_active(db: Session, caller: str) -> None:
    require_admin(db, caller)
    require_state(db, ContractState.ACTIVE)


def _log_role_change(db: Session, caller: str, action: str, doctor_id: str) -> None:
    log_action(
        db,
        actor=caller,
        action=action,
        resource_type="DoctorRole",
        resource_id=doctor_id,
        detail={"admin": caller, "doctor": doctor_id},
    )


def is_authorized_doctor(db: Session, identity: str) -> bool:
    return db.get(DoctorRole, identity) is not None


def has_activation_privilege(db: Session, identity: str) -> bool:
    role = db.get(DoctorRole, identity)
    return role is not None and role.activation_privilege


def require_authorized_doctor(db: Session, caller: str) -> DoctorRole:
    role = db.get(DoctorRole, caller)
    if role is None:
        raise RegistryError(ErrorKind.UNAUTHORIZED, "Caller is not an authorized doctor", caller=caller)
    return role


def require_activation_privilege(db: Session, caller: str) -> DoctorRole:
    role = db.get(DoctorRole, caller)
    if role is None or not role.activation_privilege:
        raise RegistryError(
            ErrorKind.UNAUTHORIZED, "Caller lacks the activation privilege", caller=caller
        )
    return role


def list_doctors(db: Session) -> list[DoctorRole]:
    return list(db.scalars(select(DoctorRole).order_by(DoctorRole.doctor_identity)))


def authorize_doctor(db: Session, caller: str, doctor_id: str) -> DoctorRole:
    _require_admin_while_active(db, caller)
    role = db.get(DoctorRole, doctor_id)
    if role is None:
        role = DoctorRole(doctor_identity=doctor_id, activation_privilege=False)
        db.add(role)
        db.flush()
    _log_role_change(db, caller, "DoctorAuthorized", doctor_id)
    return role


def deauthorize_doctor(db: Session, caller: str, doctor_id: str) -> None:
    _require_admin_while_active(db, caller)
    role = db.get(DoctorRole, doctor_id)
    if role is not None:
        db.delete(role)
        db.flush()
    else:
        logger.info("Deauthorize: %s held no role", doctor_id)
    _log_role_change(db, caller, "DoctorDeauthorized", doctor_id)


def grant_activation_privilege(db: Session, caller: str, doctor_id: str) -> DoctorRole:
    _require_admin_while_active(db, caller)
    role = db.get(DoctorRole, doctor_id)
    if role is None:
        raise RegistryError(
            ErrorKind.PRECONDITION_FAILED,
            "Activation privilege requires an authorized doctor",
            doctor=doctor_id,
        )
    role.activation_privilege = True
    _log_role_change(db, caller, "ActivationPrivilegeGranted", doctor_id)
    return role


def revoke_activation_privilege(db: Session, caller: str, doctor_id: str) -> None:
    _require_admin_while_active(db, caller)
    role = db.get(DoctorRole, doctor_id)
    if role is not None:
        role.activation_privilege = False
    _log_role_change(db, caller, "ActivationPrivilegeRevoked", doctor_id)
