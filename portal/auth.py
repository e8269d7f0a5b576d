import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import User, utcnow
from .security_utils import decode_access_token

logger = logging.getLogger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def clear_expired_suspension(db: Session, user: User) -> User:
    """Lift a suspension whose end time has passed"""
    if user.suspended and user.suspended_until and user.suspended_until <= utcnow():
        logger.info(f"🔓 Suspension lapsed for user {user.id}")
        user.suspended = False
        user.suspended_until = None
        db.commit()
        db.refresh(user)
    return user


def _resolve_user(token: str, db: Session) -> User:
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user:
        logger.warning(f"⚠️ Token subject not found: {payload['sub']}")
        raise HTTPException(status_code=401, detail="User not found")

    return clear_expired_suspension(db, user)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer session token to a user"""
    return _resolve_user(credentials.credentials, db)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous requests resolve to None"""
    if not credentials:
        return None
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        return None
    user = db.query(User).filter(User.id == payload["sub"]).first()
    return clear_expired_suspension(db, user) if user else None


async def get_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Reject suspended accounts"""
    if current_user.suspended:
        raise HTTPException(status_code=403, detail="Account suspended")
    return current_user


async def require_admin(current_user: User = Depends(get_active_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user
