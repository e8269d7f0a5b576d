"""OTP repository - Database operations for one-time codes and reset tokens"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import EmailOtp


class OtpRepository:
    """Repository for email OTP records"""

    @staticmethod
    def create_otp(
        db: Session,
        email: str,
        code_hash: str,
        expires_at: datetime,
        purpose: str = "signup",
        user_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> EmailOtp:
        otp = EmailOtp(
            email=email,
            code_hash=code_hash,
            expires_at=expires_at,
            purpose=purpose,
            user_id=user_id,
            otp_metadata=metadata,
        )
        db.add(otp)
        db.commit()
        db.refresh(otp)
        return otp

    @staticmethod
    def get_latest_pending(db: Session, email: str, purpose: str = "signup") -> Optional[EmailOtp]:
        """Newest unused record for an email"""
        return (
            db.query(EmailOtp)
            .filter(EmailOtp.email == email, EmailOtp.purpose == purpose, EmailOtp.used.is_(False))
            .order_by(EmailOtp.created_at.desc(), EmailOtp.id.desc())
            .first()
        )

    @staticmethod
    def get_pending_by_hash(db: Session, code_hash: str, purpose: str) -> Optional[EmailOtp]:
        return (
            db.query(EmailOtp)
            .filter(
                EmailOtp.code_hash == code_hash,
                EmailOtp.purpose == purpose,
                EmailOtp.used.is_(False),
            )
            .order_by(EmailOtp.created_at.desc(), EmailOtp.id.desc())
            .first()
        )

    @staticmethod
    def invalidate_pending(db: Session, email: str, purpose: str = "signup") -> int:
        count = (
            db.query(EmailOtp)
            .filter(EmailOtp.email == email, EmailOtp.purpose == purpose, EmailOtp.used.is_(False))
            .update({EmailOtp.used: True}, synchronize_session=False)
        )
        db.commit()
        return count

    @staticmethod
    def update_otp(db: Session, otp: EmailOtp, **updates) -> EmailOtp:
        for key, value in updates.items():
            setattr(otp, key, value)
        db.commit()
        db.refresh(otp)
        return otp

    @staticmethod
    def delete_otp(db: Session, otp: EmailOtp) -> None:
        db.delete(otp)
        db.commit()
