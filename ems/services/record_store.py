from typing import Any, List, Optional, Tuple, Type

from beanie import Document
from bson import ObjectId
from pymongo.errors import PyMongoError

from ems.core.exceptions import InternalError
from ems.models.employee import Attendance, Employee, LeaveRequest, Payroll


class RecordStore:
    """Read-only access to the employee-owned records the API projects."""

    async def _page(
        self, model: Type[Document], query: dict, page: int, limit: int, sort: str
    ) -> Tuple[List[Any], int]:
        skip = (page - 1) * limit
        try:
            items = await model.find(query).sort(sort).skip(skip).limit(limit).to_list()
            total = await model.find(query).count()
        except PyMongoError as exc:
            raise InternalError(f"Error fetching {model.Settings.name}") from exc
        return items, total

    async def get_employee(self, employee_id: str) -> Optional[Employee]:
        if not ObjectId.is_valid(employee_id):
            return None
        try:
            return await Employee.get(ObjectId(employee_id))
        except PyMongoError as exc:
            raise InternalError("Error fetching employee") from exc

    async def list_employees(self, page: int, limit: int, sort: str = "-created_at"):
        return await self._page(Employee, {}, page, limit, sort)

    async def list_attendance(self, page: int, limit: int, employee_id: Optional[str] = None, sort: str = "-date"):
        query = {"employee_id": employee_id} if employee_id else {}
        return await self._page(Attendance, query, page, limit, sort)

    async def list_leaves(self, page: int, limit: int, employee_id: Optional[str] = None, sort: str = "-created_at"):
        query = {"employee_id": employee_id} if employee_id else {}
        return await self._page(LeaveRequest, query, page, limit, sort)

    async def list_payroll(self, page: int, limit: int, employee_id: Optional[str] = None, sort: str = "-created_at"):
        query = {"employee_id": employee_id} if employee_id else {}
        return await self._page(Payroll, query, page, limit, sort)
