from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request

from ems.core.exceptions import NotFound
from ems.routers.auth import get_current_principal
from ems.schemas.employee import RecordListResponse, RecordResponse
from ems.services.permission import Principal
from ems.utils.pagination import build_pagination
from ems.utils.sanitizer import (
    sanitize_attendance_list,
    sanitize_employee,
    sanitize_employee_list,
    sanitize_leave_list,
    sanitize_payroll_list,
)

router = APIRouter(prefix="/employees", tags=["employees"])


def _records(request: Request):
    return request.app.state.records


def _listing(message: str, items, page: int, limit: int, total: int):
    return {
        "success": True,
        "message": message,
        "data": items,
        "pagination": build_pagination(page, limit, total),
    }


# fixed paths first so they are not captured by /{employee_id}
@router.get("/attendance", response_model=RecordListResponse)
async def list_attendance(
    request: Request,
    employee_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
):
    items, total = await _records(request).list_attendance(page=page, limit=limit, employee_id=employee_id)
    return _listing("Attendance retrieved successfully", sanitize_attendance_list(items, principal), page, limit, total)


@router.get("/leaves", response_model=RecordListResponse)
async def list_leaves(
    request: Request,
    employee_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
):
    items, total = await _records(request).list_leaves(page=page, limit=limit, employee_id=employee_id)
    return _listing("Leaves retrieved successfully", sanitize_leave_list(items, principal), page, limit, total)


@router.get("/payroll", response_model=RecordListResponse)
async def list_payroll(
    request: Request,
    employee_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
):
    items, total = await _records(request).list_payroll(page=page, limit=limit, employee_id=employee_id)
    return _listing("Payroll retrieved successfully", sanitize_payroll_list(items, principal), page, limit, total)


@router.get("", response_model=RecordListResponse)
async def list_employees(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
):
    items, total = await _records(request).list_employees(page=page, limit=limit)
    return _listing("Employees retrieved successfully", sanitize_employee_list(items, principal), page, limit, total)


@router.get("/{employee_id}", response_model=RecordResponse)
async def get_employee(
    request: Request,
    employee_id: str = Path(...),
    principal: Principal = Depends(get_current_principal),
):
    employee = await _records(request).get_employee(employee_id)
    if not employee:
        raise NotFound("Employee not found")
    return {"success": True, "message": "Employee retrieved successfully", "data": sanitize_employee(employee, principal)}
