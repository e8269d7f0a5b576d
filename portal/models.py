import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how every DateTime column is stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


ADMIN_ROLES = ("admin", "super_admin")


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=True)  # Null for invitee-only rows (Calendly)
    email_verified = Column(Boolean, default=False, nullable=False)
    full_name = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    role = Column(String(20), default="client", nullable=False)  # client, admin, super_admin
    suspended = Column(Boolean, default=False, nullable=False)
    suspended_until = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    documents = relationship(
        "ClientDocument", back_populates="user", cascade="all, delete-orphan"
    )
    contracts = relationship("Contract", back_populates="client", cascade="all, delete-orphan")
    appointments = relationship(
        "Appointment",
        back_populates="attendee",
        cascade="all, delete-orphan",
        foreign_keys="Appointment.attendee_user_id",
    )
    support_tickets = relationship(
        "SupportTicket", back_populates="user", cascade="all, delete-orphan"
    )
    resources = relationship("Resource", back_populates="client", cascade="all, delete-orphan")
    otps = relationship("EmailOtp", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class EmailOtp(Base):
    """One-time codes for signup verification and password reset tokens"""

    __tablename__ = "email_otps"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), index=True, nullable=False)
    code_hash = Column(String(64), index=True, nullable=False)  # sha256 hex
    purpose = Column(String(30), default="signup", nullable=False)  # signup, password_reset
    otp_metadata = Column("metadata", JSON, nullable=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    used = Column(Boolean, default=False, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="otps")


class ClientDocument(Base):
    __tablename__ = "client_documents"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)  # Object key in the documents bucket
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    status = Column(String(20), default="submitted", nullable=False)  # submitted, reviewed
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="documents")


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    client_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    title = Column(String(255), nullable=False)
    file_url = Column(String(500), nullable=True)  # Object key in the contracts bucket
    status = Column(String(20), default="draft", nullable=False)  # draft, sent, signed, declined, expired
    zoho_request_id = Column(String(100), index=True, nullable=True)
    zoho_document_id = Column(String(100), nullable=True)
    zoho_sign_url = Column(Text, nullable=True)
    signed_file_url = Column(String(500), nullable=True)  # Key in the signed contracts bucket
    signature_image_url = Column(String(500), nullable=True)
    signed_at = Column(DateTime, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    client = relationship("User", back_populates="contracts")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    attendee_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    provider_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )
    title = Column(String(255), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), default="scheduled", nullable=False)
    notes = Column(Text, nullable=True)
    source = Column(String(20), default="portal", nullable=False)  # portal, calendly
    created_at = Column(DateTime, default=utcnow)

    attendee = relationship("User", back_populates="appointments", foreign_keys=[attendee_user_id])


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(String(10), nullable=False)  # Low, Medium, High
    status = Column(String(10), default="open", nullable=False)  # open, closed
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="support_tickets")


class Resource(Base):
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), default="document", nullable=False)
    url = Column(Text, nullable=False)
    storage_key = Column(String(500), nullable=True)  # Null for external links
    client_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    client = relationship("User", back_populates="resources")


class Subscription(Base):
    """Local record of a billing-provider subscription handoff"""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    customer_email = Column(String(255), index=True, nullable=True)
    plan_code = Column(String(100), nullable=True)
    provider_subscription_id = Column(String(100), unique=True, index=True, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, active
    amount = Column(Float, nullable=True)
    last_event = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
