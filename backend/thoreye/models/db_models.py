"""
ThorEye Audit Engine - SQLAlchemy ORM Models
PostgreSQL database models for forms, reports, rebuttals and ATA reviews
"""
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, BigInteger, Float, DateTime, Text, JSON, ForeignKey, Enum as SQLEnum, Boolean,
)
from sqlalchemy.orm import relationship
from ..database import Base
from .ssot import ReportStatus, RebuttalType, RebuttalStatus, MAX_SCORE


# =============================================================================
# USERS
# =============================================================================

USER_ROLES = ("auditor", "partner", "manager", "teamleader", "admin", "master_auditor")


class UserDB(Base):
    """User account. The role decides which side of the rebuttal workflow the user acts for."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="auditor")
    is_inactive = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# FORMS
# =============================================================================

class AuditFormDB(Base):
    """Form definition. Sections are stored as the camelCase JSON tree."""
    __tablename__ = "audit_forms"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(255), unique=True, nullable=False, index=True)
    sections = Column(JSON, nullable=False)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# REPORTS
# =============================================================================

class AuditReportDB(Base):
    """
    Scored audit. section_answers and form_snapshot are deep copies taken at
    submission; later form edits never change a stored report.
    Timestamps are epoch milliseconds.
    """
    __tablename__ = "audit_reports"

    id = Column(String(36), primary_key=True)
    form_name = Column(String(255), nullable=False, index=True)
    form_snapshot = Column(JSON, nullable=False)

    agent = Column(String(255), nullable=False)
    agent_id = Column(String(100), nullable=False)
    auditor_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    auditor_name = Column(String(100), nullable=False)
    partner_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    section_answers = Column(JSON, nullable=False)
    spawned_sections = Column(JSON, nullable=True, default=list)
    score = Column(Integer, nullable=False, default=0)
    max_score = Column(Integer, nullable=False, default=MAX_SCORE)
    has_fatal = Column(Boolean, nullable=False, default=False)

    # Workflow - written only by the rebuttal state machine after submission
    status = Column(SQLEnum(ReportStatus), nullable=False, default=ReportStatus.COMPLETED, index=True)

    timestamp = Column(BigInteger, nullable=False)

    # Edit tracking
    edited = Column(Boolean, default=False)
    edited_by = Column(String(100), nullable=True)
    edited_at = Column(BigInteger, nullable=True)
    edit_history = Column(JSON, nullable=True, default=list)

    # Soft delete
    deleted = Column(Boolean, default=False, index=True)
    deleted_by = Column(String(36), nullable=True)
    deleted_at = Column(BigInteger, nullable=True)

    # Relationships
    rebuttals = relationship(
        "RebuttalDB", back_populates="report", cascade="all, delete-orphan",
        order_by="RebuttalDB.created_at",
    )
    ata_review = relationship("ATAReviewDB", back_populates="report", cascade="all, delete-orphan", uselist=False)


class RebuttalDB(Base):
    """Partner dispute of a report, closed by a management decision."""
    __tablename__ = "rebuttals"

    id = Column(String(36), primary_key=True)  # UUID
    audit_report_id = Column(String(36), ForeignKey("audit_reports.id", ondelete="CASCADE"), nullable=False, index=True)

    partner_id = Column(String(36), nullable=False, index=True)
    partner_name = Column(String(100), nullable=False)
    rebuttal_text = Column(Text, nullable=False)
    rebuttal_type = Column(SQLEnum(RebuttalType), nullable=False, default=RebuttalType.REBUTTAL)
    status = Column(SQLEnum(RebuttalStatus), nullable=False, default=RebuttalStatus.PENDING)
    created_at = Column(BigInteger, nullable=False)

    # Management decision
    handled_by = Column(String(36), nullable=True)
    handled_by_name = Column(String(100), nullable=True)
    handler_response = Column(Text, nullable=True)
    handled_at = Column(BigInteger, nullable=True)

    report = relationship("AuditReportDB", back_populates="rebuttals")


class ATAReviewDB(Base):
    """Master auditor review. One per report; a new review replaces the row."""
    __tablename__ = "ata_reviews"

    id = Column(String(36), primary_key=True)  # UUID
    audit_report_id = Column(
        String(36), ForeignKey("audit_reports.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    master_auditor_id = Column(String(36), nullable=False)
    master_auditor_name = Column(String(100), nullable=False)
    ata_score = Column(Integer, nullable=False)
    variance = Column(Integer, nullable=False)
    overall_accuracy = Column(Float, nullable=False)
    review_data = Column(JSON, nullable=False)  # Full ATAReview.to_dict()
    timestamp = Column(BigInteger, nullable=False)

    report = relationship("AuditReportDB", back_populates="ata_review")


class DeletedAuditDB(Base):
    """Copy of a soft-deleted report, kept for the deleted-audits view."""
    __tablename__ = "deleted_audits"

    id = Column(String(36), primary_key=True)  # UUID
    original_id = Column(String(36), nullable=False, index=True)
    form_name = Column(String(255), nullable=False)
    agent = Column(String(255), nullable=False)
    agent_id = Column(String(100), nullable=True)
    auditor_name = Column(String(100), nullable=True)
    section_answers = Column(JSON, nullable=False)
    score = Column(Integer, nullable=False)
    max_score = Column(Integer, nullable=False)
    has_fatal = Column(Boolean, nullable=False, default=False)
    timestamp = Column(BigInteger, nullable=False)
    deleted_by = Column(String(36), nullable=False)
    deleted_by_name = Column(String(100), nullable=False)
    deleted_at = Column(BigInteger, nullable=False)
    edit_history = Column(JSON, nullable=True)
