#!/usr/bin/env python3
"""
Create (or reset) a super admin account so the back-office can be logged into.

Usage: python -m scripts.create_admin admin@example.com 'password' [First] [Last]
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_password_hash
from app.database import async_session_maker
from app.models.user import User


async def create_or_reset_admin(
    db: AsyncSession,
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """Create the super admin, or reactivate it and reset its password."""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user:
        user.password_hash = get_password_hash(password)
        user.role = "super_admin"
        user.is_active = True
        print(f"✓ User '{email}' already exists, password reset (ID: {user.id})")
        return user

    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        password_hash=get_password_hash(password),
        role="super_admin",
        is_active=True,
    )
    db.add(user)
    await db.flush()

    print(f"✓ Created super admin '{email}' (ID: {user.id})")
    return user


async def main(argv: list[str]):
    if len(argv) < 2:
        print(__doc__)
        sys.exit(1)

    email, password = argv[0], argv[1]
    first_name = argv[2] if len(argv) > 2 else None
    last_name = argv[3] if len(argv) > 3 else None

    async with async_session_maker() as db:
        try:
            user = await create_or_reset_admin(db, email, password, first_name, last_name)
            await db.commit()
        except Exception as e:
            await db.rollback()
            print(f"❌ Error: {e}")
            raise

    print()
    print("Summary:")
    print(f"  Email: {user.email}")
    print(f"  Role: {user.role}")
    print(f"  UUID: {user.id}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:]))
