"""Leave ORM models: LeaveType, LeaveBalance, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_leave.common.constants import LeaveStatus, LeaveTypeStatus
from hr_leave.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveType(Base):
    __tablename__ = "leave_types"
    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "code", name="uq_leave_type_tenant_code"),
        sa.Index("ix_leave_type_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    code: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_system_defined: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    # NULL means the type is not entitlement based (allocated as 0)
    days_per_year: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 2))
    allow_carry_forward: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    max_carry_forward_days: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 2))
    min_notice_days: Mapped[int] = mapped_column(sa.Integer, default=0)
    max_consecutive_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    is_paid: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    color: Mapped[Optional[str]] = mapped_column(sa.String(7))
    status: Mapped[LeaveTypeStatus] = mapped_column(
        sa.Enum(LeaveTypeStatus, name="leave_type_status", create_type=False),
        default=LeaveTypeStatus.active,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    balances: Mapped[list[LeaveBalance]] = relationship(back_populates="leave_type")
    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")


class LeaveBalance(Base):
    """Ledger row. ``available + pending + used == total_allocated + carry_forward``
    holds after every committed mutation; counters move only through
    ``hr_leave.leave.ledger``."""

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "tenant_id", "user_id", "leave_type_id", "year",
            name="uq_leave_balance_user_type_year",
        ),
        sa.CheckConstraint("available >= 0", name="ck_leave_balance_available"),
        sa.CheckConstraint("pending >= 0", name="ck_leave_balance_pending"),
        sa.CheckConstraint("used >= 0", name="ck_leave_balance_used"),
        sa.Index("ix_leave_balance_tenant_user_year", "tenant_id", "user_id", "year"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    total_allocated: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    used: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    pending: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    available: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    carry_forward: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    leave_type: Mapped[LeaveType] = relationship(back_populates="balances", lazy="selectin")

    @property
    def is_consistent(self) -> bool:
        return (
            self.available + self.pending + self.used
            == self.total_allocated + self.carry_forward
        )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_dates"),
        sa.Index("ix_leave_request_tenant_user", "tenant_id", "user_id"),
        sa.Index("ix_leave_request_tenant_status", "tenant_id", "status"),
        sa.Index("ix_leave_request_dates", "tenant_id", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False),
        default=LeaveStatus.pending,
    )
    applied_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    approved_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rejected_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    cancelled_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    reviewer_comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests", lazy="selectin")
