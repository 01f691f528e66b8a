"""Relational schema of the object and conjunction catalogs."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite stores datetimes without zone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class TrackedObjectRow(Base):
    """A catalogued object and its current elements."""

    __tablename__ = "tracked_objects"

    norad_id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    line1 = Column(Text, nullable=True)
    line2 = Column(Text, nullable=True)
    epoch = Column(DateTime, nullable=True)
    apogee_km = Column(Float, nullable=False)
    perigee_km = Column(Float, nullable=False)
    inclination_deg = Column(Float, nullable=False)
    object_class = Column(String(16), nullable=False, default="unknown")
    rcs_size = Column(String(16), nullable=True)
    country = Column(String(16), nullable=True)
    is_custom = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_tracked_objects_shell", "perigee_km", "apogee_km"),
    )


class ConjunctionRow(Base):
    """Persisted conjunction event, unique per (primary, secondary, TCA)."""

    __tablename__ = "conjunctions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    primary_norad_id = Column(Integer, nullable=False, index=True)
    secondary_norad_id = Column(Integer, nullable=False, index=True)
    primary_name = Column(String, nullable=False, default="")
    secondary_name = Column(String, nullable=False, default="")
    tca = Column(DateTime, nullable=False, index=True)
    miss_distance_km = Column(Float, nullable=False)
    relative_speed_km_s = Column(Float, nullable=False)
    probability = Column(Float, nullable=True)
    provenance = Column(String(16), nullable=False)

    # Maneuver solution; all NULL unless a burn was found.
    maneuver_status = Column(String(16), nullable=True)
    burn_delta_v_mps = Column(Float, nullable=True)
    burn_direction = Column(String(16), nullable=True)
    burn_time = Column(DateTime, nullable=True)
    resulting_apogee_km = Column(Float, nullable=True)
    resulting_perigee_km = Column(Float, nullable=True)
    resulting_separation_km = Column(Float, nullable=True)
    planned_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("primary_norad_id", "secondary_norad_id", "tca", name="uq_conjunction_identity"),
    )
