"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hr_leave.common.constants import UNKNOWN_USER_NAME, LeaveStatus, LeaveTypeStatus


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeBrief(BaseModel):
    """Minimal leave type info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    is_paid: bool = True
    color: Optional[str] = None


class LeaveTypeCreate(BaseModel):
    """Payload for defining a tenant leave type."""

    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    days_per_year: Decimal = Field(..., ge=0, le=366)
    allow_carry_forward: bool = False
    max_carry_forward_days: Optional[Decimal] = Field(None, ge=0)
    min_notice_days: int = Field(0, ge=0)
    max_consecutive_days: Optional[int] = Field(None, ge=1)
    is_paid: bool = True
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class LeaveTypeStatusUpdate(BaseModel):
    status: LeaveTypeStatus


class LeaveTypeOut(BaseModel):
    """Full leave type representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    is_system_defined: bool = False
    days_per_year: Optional[Decimal] = None
    allow_carry_forward: bool = False
    max_carry_forward_days: Optional[Decimal] = None
    min_notice_days: int = 0
    max_consecutive_days: Optional[int] = None
    is_paid: bool = True
    color: Optional[str] = None
    status: LeaveTypeStatus


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    total_allocated: Decimal
    used: Decimal
    pending: Decimal
    available: Decimal
    carry_forward: Decimal

    leave_type: Optional[LeaveTypeBrief] = None


class AllocationOut(BaseModel):
    """Result of a year rollover."""

    year: int
    users: int
    balances_created: int


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying a leave request. The day count is computed."""

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)


class LeaveReviewRequest(BaseModel):
    """Payload for approving or rejecting a leave request."""

    comments: Optional[str] = Field(None, max_length=500)


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    total_days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    applied_date: datetime
    approved_date: Optional[datetime] = None
    rejected_date: Optional[datetime] = None
    cancelled_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewer_comments: Optional[str] = None

    # Enriched by service
    leave_type: Optional[LeaveTypeBrief] = None
    user_name: str = UNKNOWN_USER_NAME
    user_email: Optional[str] = None
