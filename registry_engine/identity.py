"""
Registry Engine — Identity collaborator.

Login happens at the hosted identity provider; requests reach this service
with the user's id (and optionally e-mail) in headers. The role is looked up
in the `user_roles` table and only gates administrator actions such as
codelist edits.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from config.settings import get_settings
from database.connection import get_session_context
from database.models import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    user_id: Optional[str]
    email: Optional[str] = None
    role: str = "user"

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def is_admin(self) -> bool:
        return self.role == get_settings().admin_role


def resolve_user(session, user_id: Optional[str], email: Optional[str] = None) -> CurrentUser:
    """Look up the role of `user_id`; unknown users get the default role."""
    settings = get_settings()
    if not user_id:
        return CurrentUser(user_id=None, email=email, role=settings.default_role)

    row = session.get(UserRole, user_id)
    if row is None:
        return CurrentUser(user_id=user_id, email=email, role=settings.default_role)
    return CurrentUser(user_id=user_id, email=email or row.email, role=row.role or settings.default_role)


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None)
) -> CurrentUser:
    """FastAPI dependency: identity of the caller."""
    try:
        with get_session_context() as session:
            return resolve_user(session, x_user_id, x_user_email)
    except SQLAlchemyError as e:
        logger.error(f"Could not fetch user role: {e}")
        return CurrentUser(user_id=x_user_id, email=x_user_email, role=get_settings().default_role)


async def require_admin(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None)
) -> CurrentUser:
    """FastAPI dependency: 401 without identity, 403 for non-admins."""
    user = await get_current_user(x_user_id, x_user_email)
    if not user.is_authenticated:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Administrator role required")
    return user
