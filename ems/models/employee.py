from datetime import date, datetime
from typing import Any, Dict, List, Optional

from beanie import Document
from pydantic import BaseModel, Field
from pymongo import ASCENDING, IndexModel


class Salary(BaseModel):
    base: float = 0
    allowance: float = 0
    deductions: float = 0


class Employee(Document):
    # owning user account
    user_id: str
    first_name: str
    last_name: str
    department: Optional[str] = None
    designation: Optional[str] = None
    joining_date: Optional[date] = None
    documents: List[Dict[str, Any]] = Field(default_factory=list)
    salary: Optional[Salary] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "employees"
        indexes = [IndexModel([("user_id", ASCENDING)], name="user_id")]


class Attendance(Document):
    # store plain employee info to simplify queries and avoid Link/class-attribute issues
    employee_id: str
    employee: Optional[Dict[str, Any]] = None
    date: datetime
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "attendances"
        indexes = [IndexModel([("employee_id", ASCENDING), ("date", ASCENDING)], name="employee_date")]


class LeaveRequest(Document):
    employee_id: str
    employee: Optional[Dict[str, Any]] = None
    start_date: datetime
    end_date: datetime
    reason: Optional[str] = None
    status: str = "pending"  # pending / approved / rejected
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "leaves"
        indexes = [IndexModel([("employee_id", ASCENDING)], name="employee_id")]


class Payroll(Document):
    employee_id: str
    employee: Optional[Dict[str, Any]] = None
    month: int = Field(ge=1, le=12)
    year: int
    basic: float = 0
    allowance: float = 0
    deductions: float = 0
    tax: float = 0
    net_salary: float = 0
    payslip_url: Optional[str] = None
    paid_on: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "payrolls"
        indexes = [
            IndexModel([("employee_id", ASCENDING), ("year", ASCENDING), ("month", ASCENDING)], name="employee_period")
        ]
