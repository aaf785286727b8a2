"""SQLAlchemy ORM models for sessions, transactions, assessments and reports"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, ForeignKey, Numeric, Text, JSON
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class AnalysisSessionRecord(Base):
    """One uploaded batch of transactions"""

    __tablename__ = "analysis_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    file_name = Column(Text, nullable=False)
    total_transactions = Column(Integer, nullable=False, default=0)
    high_risk_count = Column(Integer, nullable=False, default=0)
    medium_risk_count = Column(Integer, nullable=False, default=0)
    low_risk_count = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False, default="processing")  # processing | completed | failed
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    transactions = relationship("TransactionRecord", back_populates="session", cascade="all, delete-orphan")
    reports = relationship("AuditReportRecord", back_populates="session", cascade="all, delete-orphan")


class TransactionRecord(Base):
    """Ingested transaction, immutable after insert"""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(String(36), ForeignKey("analysis_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)  # row order within the upload
    transaction_id = Column(Text, nullable=False)
    transaction_date = Column(Date, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    vendor_name = Column(Text, nullable=False)
    vendor_country = Column(Text, nullable=False)
    payment_method = Column(Text, nullable=False)
    department = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    session = relationship("AnalysisSessionRecord", back_populates="transactions")
    assessment = relationship(
        "RiskAssessmentRecord", back_populates="transaction", uselist=False, cascade="all, delete-orphan"
    )


class RiskAssessmentRecord(Base):
    """Rule-engine result for a transaction (at most one per transaction)"""

    __tablename__ = "risk_assessments"

    id = Column(String(36), primary_key=True, default=_new_id)
    transaction_id = Column(
        String(36), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    risk_score = Column(Integer, nullable=False)
    risk_level = Column(Text, nullable=False)
    risk_factors = Column(JSON, nullable=False, default=list)
    risk_reason = Column(Text, nullable=True)
    audit_observation = Column(Text, nullable=True)
    risk_reason_detail = Column(Text, nullable=True)
    suggested_action = Column(Text, nullable=True)

    # Reviewer workflow, written outside the scoring pipeline
    reviewed = Column(Boolean, nullable=False, default=False)
    review_notes = Column(Text, nullable=True)
    reviewed_by = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transaction = relationship("TransactionRecord", back_populates="assessment")


class AuditReportRecord(Base):
    """Generated audit report; regeneration inserts a new row"""

    __tablename__ = "audit_reports"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(String(36), ForeignKey("analysis_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    executive_summary = Column(Text, nullable=True)
    risk_posture = Column(Text, nullable=True)
    key_risk_themes = Column(JSON, nullable=False, default=list)
    areas_of_attention = Column(JSON, nullable=False, default=list)
    statistics = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    session = relationship("AnalysisSessionRecord", back_populates="reports")
