"""Cross-collection rules applied while the entity store mutates.

Counts are derived by scanning the user collection on every call and are never
cached, so they always reflect the latest completed write.
"""
from __future__ import annotations

from typing import Iterable, Optional

from . import schemas
from .errors import PreconditionFailedError, ValidationFailedError


def admins_of(
    users: Iterable[schemas.User], hospital_id: str, admin_role: str
) -> list[schemas.User]:
    return [
        user
        for user in users
        if user.hospital_id == hospital_id and user.role == admin_role
    ]


def admin_count(users: Iterable[schemas.User], hospital_id: str, admin_role: str) -> int:
    return len(admins_of(users, hospital_id, admin_role))


def role_usage(users: Iterable[schemas.User], role_name: str) -> int:
    return sum(1 for user in users if user.role == role_name)


def ensure_role_exists(roles: Iterable[schemas.Role], role_name: str) -> None:
    if not any(role.name == role_name for role in roles):
        raise ValidationFailedError(f"Unknown role '{role_name}'")


def ensure_unique_role_name(
    roles: Iterable[schemas.Role], name: str, *, exclude_id: Optional[str] = None
) -> None:
    if any(role.name == name and role.id != exclude_id for role in roles):
        raise ValidationFailedError(f"Role '{name}' already exists")


def ensure_hospital_assignment(
    role_name: str,
    hospital_id: Optional[str],
    hospitals: Iterable[schemas.Hospital],
    top_level_role: str,
) -> None:
    """Every role except the top-level one must point at an existing hospital."""

    if role_name == top_level_role:
        return
    if not hospital_id:
        raise ValidationFailedError(f"Hospital is required for role '{role_name}'")
    if not any(hospital.id == hospital_id for hospital in hospitals):
        raise ValidationFailedError(f"Hospital '{hospital_id}' does not exist")


def ensure_role_unused(users: Iterable[schemas.User], role: schemas.Role) -> None:
    in_use = role_usage(users, role.name)
    if in_use > 0:
        raise PreconditionFailedError(
            f"Role '{role.name}' is assigned to {in_use} user(s); reassign them first"
        )


def ensure_role_not_reserved(
    role: schemas.Role, reserved: Iterable[str], action: str
) -> None:
    """The top-level and hospital-admin roles are referenced by configuration."""

    if role.name in set(reserved):
        raise PreconditionFailedError(f"Role '{role.name}' is built in and cannot be {action}")
