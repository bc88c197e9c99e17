"""
Authorization rules as pure functions over (caller, target) pairs.

Nothing here touches the database or raises; each check returns an
``AccessDecision`` and the endpoint turns a denial into a 403.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.models.enums import Role
from app.models.expense import Expense
from app.models.user import User


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessDecision(True)


def _deny(reason: str) -> AccessDecision:
    return AccessDecision(False, reason)


def is_admin(caller: User) -> bool:
    role = Role(caller.role)
    if role is Role.ADMIN:
        return True
    if role is Role.GUEST:
        return False
    raise ValueError(f"Unhandled role: {role!r}")


def can_manage_employees(caller: User, action: str = "manage") -> AccessDecision:
    if not is_admin(caller):
        return _deny(f"This user is not allowed to {action} employees.")
    return ALLOW


def can_manage_projects(caller: User, action: str = "manage") -> AccessDecision:
    if not is_admin(caller):
        return _deny(f"This user is not allowed to {action} projects.")
    return ALLOW


def can_update_user(caller: User, target: User) -> AccessDecision:
    is_self = caller.id == target.id
    if not is_admin(caller) and not is_self:
        return _deny("This user is not allowed to update other users.")
    if Role(target.role) is Role.ADMIN and not is_self:
        return _deny("Cannot update an admin user.")
    return ALLOW


def can_change_role(caller: User, target: User, new_role: Role) -> AccessDecision:
    current = Role(target.role)
    if new_role is current:
        return ALLOW
    if current is Role.ADMIN:
        return _deny("Cannot demote an admin user.")
    if not is_admin(caller):
        return _deny("Only an admin can change user roles.")
    return ALLOW


def can_delete_user(
    caller: User,
    target: User,
    claimed_user_id: int | None = None,
) -> AccessDecision:
    """Admins may delete others, users may delete themselves, nobody deletes an admin.

    ``claimed_user_id`` is the optional ``userId`` from the request body; it
    must name the authenticated caller when present.
    """
    if claimed_user_id is not None and claimed_user_id != caller.id:
        return _deny("You are not authorized to act on behalf of another user.")
    if not is_admin(caller) and caller.id != target.id:
        return _deny("This user is not allowed to delete other users.")
    if Role(target.role) is Role.ADMIN:
        return _deny("Cannot delete an admin user.")
    return ALLOW


def can_modify_expense(caller: User, expense: Expense) -> AccessDecision:
    if is_admin(caller) or expense.owner_id == caller.id:
        return ALLOW
    return _deny("This user is not allowed to modify this expense.")
