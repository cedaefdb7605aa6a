"""
Script to create (or promote) an administrator with a password for local use.

Registration only ever creates contributors, so the first administrator comes
from here:

    python -m app.scripts.create_local_admin --email admin@example.org --password ...
"""

import asyncio
import argparse
import uuid

import structlog
from sqlmodel import select

from app.core.auth import hash_password
from app.core.config import get_settings
from app.core.database import get_session_context, init_db
from app.core.logging import configure_logging
from app.models.user import User
from lcp_shared.schemas.common import Role

log = structlog.get_logger()


async def create_admin(email: str, password: str, display_name: str | None = None) -> User:
    await init_db()

    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                id=uuid.uuid4(),
                email=email,
                password_hash=hash_password(password),
                display_name=display_name or email.split("@")[0],
                role=Role.ADMIN.value,
            )
            session.add(user)
            log.info("admin.created", user_id=str(user.id), email=email)
        else:
            user.role = Role.ADMIN.value
            user.password_hash = hash_password(password)
            session.add(user)
            log.info("admin.promoted", user_id=str(user.id), email=email)

    return user


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--display-name", default=None, help="Display name (defaults to the email's local part)")

    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, "console")
    asyncio.run(create_admin(args.email, args.password, args.display_name))
