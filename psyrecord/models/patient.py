"""
Patient-side data model.

- Patient: identity, demographics, guardian data for minors, current status
- PatientStatusHistory: append-only log of treatment status changes
- AuditLog: immutable compliance trail of who did what to which row
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
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from psyrecord.models.database import Base, JSONType
from psyrecord.reference.catalog import TREATMENT_STATUSES, values


def _utcnow():
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Patient
# ---------------------------------------------------------------------------
class Patient(Base):
    __tablename__ = "patients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, comment="Owning clinician")

    name = Column(String(255), nullable=False)
    cpf = Column(String(11), nullable=False, comment="National ID, digits only")
    birth_date = Column(Date, nullable=False)
    address = Column(String(255))
    city = Column(String(128))
    state = Column(String(2))
    zip_code = Column(String(8), comment="Digits only")
    phone = Column(String(11), comment="Digits only")
    email = Column(String(255))
    profession = Column(String(128))

    is_minor = Column(Boolean, default=False, nullable=False)
    guardian_name = Column(String(255))
    guardian_cpf = Column(String(11))
    guardian_phone = Column(String(11))
    guardian_relationship = Column(String(64))

    current_status = Column(
        Enum(*values(TREATMENT_STATUSES), name="treatment_status_enum"),
        default="active",
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    sessions = relationship(
        "ClinicalSession", back_populates="patient", passive_deletes=True
    )
    status_history = relationship(
        "PatientStatusHistory", back_populates="patient", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_patients_user", "user_id"),
        Index("ix_patients_user_name", "user_id", "name"),
    )


# ---------------------------------------------------------------------------
# Status history - rows are only ever inserted
# ---------------------------------------------------------------------------
class PatientStatusHistory(Base):
    __tablename__ = "patient_status_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id = Column(
        Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(
        Enum(*values(TREATMENT_STATUSES), name="treatment_status_enum"),
        nullable=False,
    )
    reason = Column(Text, nullable=False)
    notes = Column(Text)
    changed_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    created_by = Column(Uuid, nullable=False, comment="User who made the change")

    patient = relationship("Patient", back_populates="status_history")

    __table_args__ = (Index("ix_status_history_patient", "patient_id", "changed_at"),)


# ---------------------------------------------------------------------------
# Audit Log
# ---------------------------------------------------------------------------
class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    actor = Column(String(128), nullable=False, comment="User id of the clinician")
    action = Column(
        String(64), nullable=False, comment="create | update | delete | status_change | export"
    )
    resource_type = Column(String(64), nullable=False)
    resource_id = Column(Uuid, nullable=False)
    detail = Column(JSONType, comment="Identifiers and flags only, never clinical text")
    timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (Index("ix_audit_timestamp", "timestamp"),)
