"""
Role-aware projections of records before they leave the API.

Each `sanitize_*` function builds its output from an explicit allow-list of
public fields and only then adds gated fields the requesting principal may
see. Records may be Beanie documents, plain dicts or any attribute object.
"""
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from ems.services.permission import (
    Principal,
    can_view_employee_details,
    can_view_payslip,
    can_view_rejection_reason,
    can_view_salary,
    can_view_salary_details,
    field_of,
)

MS_PER_DAY = 1000 * 60 * 60 * 24

USER_FIELDS = ("username", "email", "role", "is_admin", "provider", "last_login", "created_at", "updated_at")
EMPLOYEE_FIELDS = (
    "user_id",
    "first_name",
    "last_name",
    "department",
    "designation",
    "joining_date",
    "documents",
    "created_at",
    "updated_at",
)
ATTENDANCE_FIELDS = ("employee_id", "date", "clock_in", "clock_out", "created_at", "updated_at")
LEAVE_FIELDS = ("employee_id", "start_date", "end_date", "reason", "status", "created_at", "updated_at")
PAYROLL_FIELDS = ("employee_id", "month", "year", "paid_on", "created_at", "updated_at")
SALARY_DETAIL_FIELDS = ("basic", "allowance", "deductions", "tax", "net_salary")


def _record_id(record: Any) -> Optional[str]:
    value = field_of(record, "id")
    if value is None and isinstance(record, dict):
        value = record.get("_id")
    return str(value) if value is not None else None


def _plain(value: Any) -> Any:
    # enums and nested pydantic models flatten to plain values
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return getattr(value, "value", value)


def _pick(record: Any, fields) -> Dict[str, Any]:
    out: Dict[str, Any] = {"id": _record_id(record)}
    for name in fields:
        out[name] = _plain(field_of(record, name))
    return out


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, datetime):
        # naive values are taken as UTC
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


def leave_duration(start: Any, end: Any) -> Optional[int]:
    """Inclusive day count between two dates, e.g. Jan 1 to Jan 3 is 3."""
    start_dt, end_dt = _as_datetime(start), _as_datetime(end)
    if start_dt is None or end_dt is None:
        return None
    diff_ms = abs((end_dt - start_dt).total_seconds()) * 1000
    return math.ceil(diff_ms / MS_PER_DAY) + 1


def _list(records: Any, sanitize, principal: Optional[Principal]) -> List[Dict[str, Any]]:
    if not isinstance(records, (list, tuple)):
        return []
    return [sanitize(record, principal) for record in records]


def sanitize_user(user: Any) -> Optional[Dict[str, Any]]:
    if not user:
        return None
    return _pick(user, USER_FIELDS)


def sanitize_users(users: Any) -> List[Dict[str, Any]]:
    if not isinstance(users, (list, tuple)):
        return []
    return [sanitize_user(user) for user in users]


def sanitize_employee(employee: Any, principal: Optional[Principal]) -> Optional[Dict[str, Any]]:
    if not employee:
        return None
    sanitized = _pick(employee, EMPLOYEE_FIELDS)
    # only admin, hr, managers and the employee themselves see salary
    if can_view_salary(principal, employee):
        sanitized["salary"] = _plain(field_of(employee, "salary"))
    return sanitized


def sanitize_employee_list(employees: Any, principal: Optional[Principal]) -> List[Dict[str, Any]]:
    return _list(employees, sanitize_employee, principal)


def sanitize_attendance(attendance: Any, principal: Optional[Principal]) -> Optional[Dict[str, Any]]:
    if not attendance:
        return None
    sanitized = _pick(attendance, ATTENDANCE_FIELDS)
    if can_view_employee_details(principal, attendance):
        sanitized["employee_details"] = field_of(attendance, "employee")
    return sanitized


def sanitize_attendance_list(records: Any, principal: Optional[Principal]) -> List[Dict[str, Any]]:
    return _list(records, sanitize_attendance, principal)


def sanitize_leave(leave: Any, principal: Optional[Principal]) -> Optional[Dict[str, Any]]:
    if not leave:
        return None
    sanitized = _pick(leave, LEAVE_FIELDS)

    duration = leave_duration(field_of(leave, "start_date"), field_of(leave, "end_date"))
    if duration is not None:
        sanitized["duration"] = duration

    status = str(_plain(field_of(leave, "status")) or "")
    rejection_reason = field_of(leave, "rejection_reason")
    if status.lower() == "rejected" and rejection_reason and can_view_rejection_reason(principal, leave):
        sanitized["rejection_reason"] = rejection_reason

    if can_view_employee_details(principal, leave):
        sanitized["employee_details"] = field_of(leave, "employee")
    return sanitized


def sanitize_leave_list(leaves: Any, principal: Optional[Principal]) -> List[Dict[str, Any]]:
    return _list(leaves, sanitize_leave, principal)


def sanitize_payroll(payroll: Any, principal: Optional[Principal]) -> Optional[Dict[str, Any]]:
    if not payroll:
        return None
    sanitized = _pick(payroll, PAYROLL_FIELDS)

    if can_view_salary_details(principal, payroll):
        for name in SALARY_DETAIL_FIELDS:
            sanitized[name] = field_of(payroll, name)

    if can_view_payslip(principal, payroll):
        sanitized["payslip_url"] = field_of(payroll, "payslip_url")

    if can_view_employee_details(principal, payroll):
        sanitized["employee_details"] = field_of(payroll, "employee")
    return sanitized


def sanitize_payroll_list(payrolls: Any, principal: Optional[Principal]) -> List[Dict[str, Any]]:
    return _list(payrolls, sanitize_payroll, principal)
