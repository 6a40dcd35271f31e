"""
records.py — ORM tables for incidents, location checks and their links.

    incidents                  one row per geofenced zone (soft-deleted via is_active)
    location_checks            one row per submitted coordinate sample
    location_check_incidents   (check, incident) pairs, composite primary key
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.database import Base


class IncidentRecord(Base):
    __tablename__ = "incidents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    radius: Mapped[float] = mapped_column(Float, nullable=False)  # meters
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_incidents_active_latitude", "is_active", "latitude"),
        Index("ix_incidents_created_at", "created_at"),
    )


class LocationCheckRecord(Base):
    __tablename__ = "location_checks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    checked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    webhook_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


location_check_incidents = Table(
    "location_check_incidents",
    Base.metadata,
    Column(
        "location_check_id", Uuid,
        ForeignKey("location_checks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "incident_id", Uuid,
        ForeignKey("incidents.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Index("ix_location_check_incidents_incident", "incident_id"),
)
