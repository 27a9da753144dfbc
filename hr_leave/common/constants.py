"""Enums and constants for the leave service — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class LeaveTypeStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


# ── Holidays ────────────────────────────────────────────────────────

class HolidayType(str, enum.Enum):
    public = "public"
    optional = "optional"
    restricted = "restricted"


# ── Notifications ───────────────────────────────────────────────────

class NotificationEvent(str, enum.Enum):
    leave_applied = "leave.applied"
    leave_approved = "leave.approved"
    leave_rejected = "leave.rejected"
    leave_cancelled = "leave.cancelled"


# ── Misc constants ──────────────────────────────────────────────────

WEEKEND_DAYS = frozenset({5, 6})    # Saturday, Sunday (date.weekday())
UNKNOWN_USER_NAME = "Unknown User"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
