"""User service - Profile and admin account operations"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User, utcnow
from ...shared.validators import parse_duration
from ...utils.sanitization import sanitize_string
from .repository import UserRepository
from .schemas import ProfileUpdate

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user accounts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository()

    def get_user(self, user_id: str) -> User:
        user = self.repo.get_by_id(self.db, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        updates = {
            field: sanitize_string(value)
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        return self.repo.update_user(self.db, user, **updates)

    def list_users(self) -> list[User]:
        return self.repo.list_users(self.db)

    def suspend_user(self, admin: User, user_id: str, duration: Optional[str] = None) -> User:
        if user_id == admin.id:
            raise HTTPException(status_code=400, detail="You cannot suspend your own account")

        try:
            delta = parse_duration(duration)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        user = self.get_user(user_id)
        until = utcnow() + delta
        logger.info(f"⛔ Admin {admin.id} suspending user {user.id} until {until.isoformat()}")
        return self.repo.update_user(self.db, user, suspended=True, suspended_until=until)

    def unsuspend_user(self, admin: User, user_id: str) -> User:
        user = self.get_user(user_id)
        logger.info(f"🔓 Admin {admin.id} lifting suspension for user {user.id}")
        return self.repo.update_user(self.db, user, suspended=False, suspended_until=None)

    def delete_user(self, admin: User, user_id: str) -> dict:
        if user_id == admin.id:
            raise HTTPException(status_code=400, detail="You cannot delete your own account")
        user = self.get_user(user_id)
        self.repo.delete_user(self.db, user)
        logger.info(f"🗑️ Admin {admin.id} deleted user {user_id}")
        return {"ok": True}
