"""
Field-level visibility rules.

Every gated field (salary, employee details, rejection reason, salary
details, payslip) follows the same decision table:

    no principal                      -> hidden
    is_admin flag, admin or hr role   -> visible
    manager role                      -> visible (no department scoping yet)
    principal owns the record         -> visible
    otherwise                         -> hidden

`require_admin` is deliberately stricter: it looks at the role only, so a
principal with `is_admin=True` but role `user` is not an admin there.
"""
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Iterable, Optional, Union

from bson import ObjectId

from ems.models.users import Role

PRIVILEGED_ROLES = frozenset({Role.ADMIN, Role.HR})

# checked in order; employee records point at their user, the rest at the employee
OWNER_FIELDS = ("employee_id", "employee", "user_id", "user")


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role
    is_admin: bool = False

    def __post_init__(self):
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "role", Role(self.role))


class GatedField(str, Enum):
    SALARY = "salary"
    EMPLOYEE_DETAILS = "employee_details"
    REJECTION_REASON = "rejection_reason"
    SALARY_DETAILS = "salary_details"
    PAYSLIP = "payslip"


def _id_of(obj) -> Optional[str]:
    if obj is None:
        return None
    if isinstance(obj, dict):
        value = obj.get("id", obj.get("_id"))
        return str(value) if value is not None else None
    oid = getattr(obj, "id", None)
    if oid is not None:
        return str(oid)
    ref = getattr(obj, "ref", None)
    if ref is not None:
        _id = getattr(ref, "id", None)
        if _id is not None:
            return str(_id)
    if isinstance(obj, (str, int, ObjectId)):
        return str(obj)
    return None


def field_of(record: Any, name: str, default=None):
    if record is None:
        return default
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def owner_id_of(record: Any) -> Optional[str]:
    for name in OWNER_FIELDS:
        owner = _id_of(field_of(record, name))
        if owner:
            return owner
    return None


def decide(role: Optional[Role], is_admin: bool, is_owner: bool) -> bool:
    if role is None:
        return False
    if is_admin or role in PRIVILEGED_ROLES:
        return True
    if role == Role.MANAGER:
        return True
    return is_owner


def can_view(field: GatedField, principal: Optional[Principal], record: Any) -> bool:
    if principal is None:
        return False
    owner = owner_id_of(record)
    is_owner = owner is not None and owner == str(principal.id)
    return decide(principal.role, principal.is_admin, is_owner)


can_view_salary = partial(can_view, GatedField.SALARY)
can_view_employee_details = partial(can_view, GatedField.EMPLOYEE_DETAILS)
can_view_rejection_reason = partial(can_view, GatedField.REJECTION_REASON)
can_view_salary_details = partial(can_view, GatedField.SALARY_DETAILS)
can_view_payslip = partial(can_view, GatedField.PAYSLIP)


class PermissionService:
    @staticmethod
    def require_admin(principal: Optional[Principal]) -> bool:
        return principal is not None and principal.role == Role.ADMIN

    @staticmethod
    def permit(principal: Optional[Principal], roles: Iterable[Union[Role, str]]) -> bool:
        if principal is None:
            return False
        allowed = {Role(r) for r in roles}
        return principal.role in allowed

    @staticmethod
    def can_view(field: GatedField, principal: Optional[Principal], record: Any) -> bool:
        return can_view(field, principal, record)
