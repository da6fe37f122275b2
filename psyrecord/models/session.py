"""
Clinical sessions and their attached documents.

The table is flat: intake-only columns stay NULL on regular and closure
sessions. Which columns are meaningful per session type is decided by the
request schemas and the form rules, not by the storage layer.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from psyrecord.models.database import Base, JSONType
from psyrecord.reference.catalog import (
    DEFAULT_DURATION,
    DOCUMENT_TYPES,
    MODALITIES,
    SESSION_TYPES,
    values,
)


def _utcnow():
    return datetime.now(timezone.utc)


class ClinicalSession(Base):
    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id = Column(
        Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Uuid, nullable=False)

    session_type = Column(
        Enum(*values(SESSION_TYPES), name="session_type_enum"),
        default="regular",
        nullable=False,
    )
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False, comment="HH:MM")
    duration_minutes = Column(Integer, default=DEFAULT_DURATION, nullable=False)
    modality = Column(
        Enum(*values(MODALITIES), name="session_modality_enum"),
        default="in-person",
        nullable=False,
    )

    # General state
    topics = Column(JSONType, default=list, nullable=False)
    sleep_pattern = Column(String(32))
    mood = Column(JSONType, default=list, nullable=False)
    eating = Column(String(32))
    medication_status = Column(String(32))
    medication_new = Column(Text)

    # Approach and techniques
    approach = Column(String(32))
    techniques = Column(JSONType, default=list, nullable=False)

    # Diagnostic coding
    dsm_diagnosis = Column(JSONType, default=list, nullable=False)
    cid_diagnosis = Column(JSONType, default=list, nullable=False)

    # Evolution
    clinical_observations = Column(Text)
    clinical_hypotheses = Column(Text)
    observed_progress = Column(Text)
    interventions = Column(Text)

    # Referral
    referral_needed = Column(Boolean, default=False, nullable=False)
    referral_to = Column(String(255))
    referral_reason = Column(Text)

    # Intake only
    main_complaint = Column(Text)
    complaint_history = Column(Text)
    relevant_history = Column(Text)
    therapeutic_goals = Column(Text)
    treatment_plan = Column(Text)

    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    patient = relationship("Patient", back_populates="sessions")
    documents = relationship(
        "SessionDocument", back_populates="session", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_sessions_patient_date", "patient_id", "date"),
        Index("ix_sessions_user", "user_id"),
    )


class SessionDocument(Base):
    __tablename__ = "session_documents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
    )
    document_type = Column(
        Enum(*values(DOCUMENT_TYPES), name="document_type_enum"),
        default="other",
        nullable=False,
    )
    description = Column(Text)
    file_path = Column(String(512), comment="Blob store handle")
    content_type = Column(String(128))
    size_bytes = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    session = relationship("ClinicalSession", back_populates="documents")

    __table_args__ = (Index("ix_session_documents_session", "session_id"),)
