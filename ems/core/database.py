import logging

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from ems.core.config import Settings
from ems.models.employee import Attendance, Employee, LeaveRequest, Payroll
from ems.models.users import User

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "ems"

document_models = [
    User,
    Employee,
    Attendance,
    LeaveRequest,
    Payroll,
]


async def init_db(settings: Settings) -> AsyncIOMotorClient:
    client = AsyncIOMotorClient(settings.MONGODB_URL)
    if settings.MONGODB_DB_NAME:
        db = client[settings.MONGODB_DB_NAME]
    else:
        db = client.get_default_database(DEFAULT_DB_NAME)

    await init_beanie(database=db, document_models=document_models)
    logger.info("Database initialized: %s", db.name)
    return client
