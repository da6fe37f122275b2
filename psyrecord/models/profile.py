from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Uuid

from psyrecord.models.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Profile(Base):
    """The clinician. One row per authenticated user; id equals the user id."""

    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True)
    full_name = Column(String(255), nullable=False)
    crp = Column(String(32), nullable=False, comment="Professional registration number")
    email = Column(String(255))
    phone = Column(String(11))
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
