#!/usr/bin/env python3
"""
Create the first administrator account.

Does nothing if any ADMIN user already exists.

Run with: python -m inventory_api.seed_admin --email admin@example.com --password '...'
"""

import argparse
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_api.api.deps import get_password_hash
from inventory_api.database import async_session_maker, init_db
from inventory_api.models.user import User

logger = logging.getLogger(__name__)


async def seed_admin(db: AsyncSession, email: str, password: str, name: str = "System Administrator"):
    """Return ``(admin, created)``; the existing admin is returned untouched."""
    result = await db.execute(select(User).where(User.role == "ADMIN").limit(1))
    existing = result.scalar_one_or_none()
    if existing is not None:
        logger.info("Admin user already exists: %s", existing.email)
        return existing, False

    admin = User(
        email=email,
        name=name,
        role="ADMIN",
        is_active=True,
        hashed_password=get_password_hash(password),
    )
    db.add(admin)
    await db.commit()
    logger.info("Admin user created: %s", admin.email)
    return admin, True


async def main(args):
    await init_db()
    async with async_session_maker() as db:
        await seed_admin(db, args.email, args.password, args.name)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the first administrator account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="System Administrator")
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    asyncio.run(main(parser.parse_args()))
