from typing import Any, Dict, List

from pydantic import BaseModel

from ems.schemas.users import Pagination


# projected records keep a variable key set: gated fields are absent, not null
class RecordListResponse(BaseModel):
    success: bool
    message: str
    data: List[Dict[str, Any]]
    pagination: Pagination


class RecordResponse(BaseModel):
    success: bool
    message: str
    data: Dict[str, Any]
