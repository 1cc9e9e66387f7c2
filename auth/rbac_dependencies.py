"""
Session dependencies for FastAPI.
Provides reusable dependency functions for routes that need the signed-in user.
"""

from typing import Optional

from fastapi import Cookie, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from auth.auth_manager import auth_manager
from auth.models import User
from oauth2.config import ADMIN_PERMISSION_LEVEL
from storage.relational.database import get_db

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_current_user(sid: Optional[str] = Cookie(None)) -> dict:
    """
    Dependency: Verify the "sid" session cookie and return its payload.
    """
    if not sid:
        raise HTTPException(status_code=403, detail="Authentication required")

    payload = auth_manager.verify_token(sid)

    if not payload:
        raise HTTPException(status_code=403, detail="Authentication required")

    return payload


async def get_current_user_id(user: dict = Depends(get_current_user)) -> int:
    """
    Dependency: Id of the signed-in user.
    """
    return user["id"]


async def require_admin(
    user: dict = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Dependency: Require an administrator (permission level 3 or above).
    """
    db_user = db.query(User).filter(User.id == user["id"]).first()

    if not db_user or db_user.permission < ADMIN_PERMISSION_LEVEL:
        logger.warning(
            f"User {user['id']} denied admin access - insufficient permissions "
            f"(Required: {ADMIN_PERMISSION_LEVEL}, Current: {db_user.permission if db_user else None})"
        )
        raise HTTPException(status_code=403, detail="Administrator access required")

    return user
