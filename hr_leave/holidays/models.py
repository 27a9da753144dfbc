"""Holiday ORM model — one row per tenant per calendar date."""

from __future__ import annotations

import uuid
import datetime as dt
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hr_leave.common.constants import HolidayType
from hr_leave.database import Base


class Holiday(Base):
    __tablename__ = "holidays"
    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "date", name="uq_holiday_tenant_date"),
        sa.Index("ix_holiday_tenant_type", "tenant_id", "type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    type: Mapped[HolidayType] = mapped_column(
        sa.Enum(HolidayType, name="holiday_type", create_type=False),
        default=HolidayType.public,
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_optional: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: dt.datetime.now(dt.timezone.utc)
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: dt.datetime.now(dt.timezone.utc),
        onupdate=lambda: dt.datetime.now(dt.timezone.utc),
    )
