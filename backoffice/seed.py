"""
Database seed

Creates the tables and the initial administrator account. The admin has
no MFA yet, so the first login goes through forced enrollment.

Usage: python -m backoffice.seed
"""

import asyncio
import logging

from decouple import config

from backoffice.constants.roles import RoleName
from backoffice.database import AsyncSessionLocal, Base, engine
from backoffice.services.auth_service import AuthService
from backoffice.services.credential_store import SqlAlchemyCredentialStore

logger = logging.getLogger(__name__)

ADMIN_EMAIL = config("ADMIN_EMAIL", default="admin@fbr.gov.pk")
ADMIN_NAME = config("ADMIN_NAME", default="System Administrator")
ADMIN_PASSWORD = config("ADMIN_PASSWORD", default="Admin@123")


async def seed_admin(session) -> bool:
    """Create the initial admin unless an account with that email exists."""
    store = SqlAlchemyCredentialStore(session)
    if await store.find_account_by_email(ADMIN_EMAIL):
        logger.info(f"Admin {ADMIN_EMAIL} already exists, skipping")
        return False

    if ADMIN_PASSWORD == "Admin@123":
        logger.warning("Seeding the admin with the default password; change it after the first login")

    service = AuthService(store)
    admin = await service.create_account(ADMIN_EMAIL, ADMIN_PASSWORD, role=RoleName.ADMIN, name=ADMIN_NAME)
    logger.info(f"Admin user created: {admin.email}")
    return True


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await seed_admin(session)

    await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    asyncio.run(main())
