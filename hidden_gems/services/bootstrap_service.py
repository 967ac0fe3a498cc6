# hidden_gems/services/bootstrap_service.py
import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.models import User
from hidden_gems.services.auth_service import hash_password

logger = logging.getLogger("hidden-gems.bootstrap")


async def promote_admin(db: AsyncSession, email: str, password: Optional[str] = None, full_name: Optional[str] = None) -> User:
    """Give ``email`` the admin role, creating the account if it does not exist."""
    email = email.strip().lower()
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()

    if user is None:
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            password_hash=hash_password(password) if password else None,
            full_name=full_name or email.split("@")[0],
            role="admin",
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        db.add(user)
        logger.info(f"Created admin account {email}")
    else:
        user.role = "admin"
        user.updated_at = datetime.utcnow()
        if password:
            user.password_hash = hash_password(password)
        logger.info(f"Promoted {email} to admin")

    await db.commit()
    return user
