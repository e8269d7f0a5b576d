"""User repository - Database operations for users and profiles"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment, User


class UserRepository:
    """Repository for user database operations"""

    @staticmethod
    def get_by_id(db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def list_users(db: Session) -> list[User]:
        return db.query(User).order_by(User.created_at.desc()).all()

    @staticmethod
    def create_user(db: Session, **user_data) -> User:
        user = User(**user_data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def update_user(db: Session, user: User, **updates) -> User:
        """Update a user; None values are written, so callers pass only changed fields"""
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def delete_user(db: Session, user: User) -> None:
        """Delete a user and everything they own"""
        # Appointments they provided stay with their attendees
        db.query(Appointment).filter(Appointment.provider_user_id == user.id).update(
            {Appointment.provider_user_id: None}, synchronize_session=False
        )
        db.delete(user)
        db.commit()
