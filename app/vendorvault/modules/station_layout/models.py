from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.vendorvault.models import Base


class StationLayoutRecord(Base):
    """
    One persisted layout document per station.

    `version` increments on every successful save and acts as the optimistic
    concurrency token for editors that send `expectedVersion`.
    """

    __tablename__ = "station_layouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    station_id: Mapped[int] = mapped_column(ForeignKey("stations.id", ondelete="CASCADE"), nullable=False, unique=True)
    station_name: Mapped[str] = mapped_column(String(255), nullable=False)
    station_code: Mapped[str] = mapped_column(String(8), nullable=False)
    manager_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    document_json: Mapped[str] = mapped_column(Text, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
