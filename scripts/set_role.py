import asyncio
import sys

from ems.core.config import get_settings
from ems.core.database import init_db
from ems.core.exceptions import AppError
from ems.services.user_store import UserStore


async def set_role(email: str, role: str) -> int:
    client = await init_db(get_settings())
    try:
        user = await UserStore().set_role(email, role)
    except AppError as exc:
        print(f"Error: {exc.message}")
        return 1
    finally:
        client.close()
    print(f"Updated {user.email}: role={getattr(user.role, 'value', user.role)}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python -m scripts.set_role <EMAIL> <admin|hr|manager|user>")
        sys.exit(1)
    EMAIL, ROLE = sys.argv[1], sys.argv[2]
    sys.exit(asyncio.run(set_role(EMAIL, ROLE)))
