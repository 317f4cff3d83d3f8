from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.vendorvault.models import Base


class Station(Base):
    __tablename__ = "stations"
    __table_args__ = (
        Index("idx_stations_manager", "manager_id"),
        Index("idx_stations_approval_status", "approval_status"),
        CheckConstraint("platforms_count >= 1", name="ck_stations_platforms_count_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    station_name: Mapped[str] = mapped_column(String(255), nullable=False)
    station_code: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)  # upper-case, e.g. "NDLS"
    railway_zone: Mapped[str] = mapped_column(String(64), nullable=False)
    station_category: Mapped[str | None] = mapped_column(String(16), nullable=True)  # e.g. "NSG-1"

    platforms_count: Mapped[int] = mapped_column(Integer, nullable=False)

    manager_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # PENDING -> APPROVED | REJECTED
    approval_status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    # ACTIVE | RENOVATION | PENDING_APPROVAL
    operational_status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING_APPROVAL")
    layout_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
