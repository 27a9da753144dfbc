"""Common module — shared utilities for the leave service."""

from hr_leave.common.audit import AuditTrail, create_audit_entry
from hr_leave.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    UNKNOWN_USER_NAME,
    WEEKEND_DAYS,
    HolidayType,
    LeaveStatus,
    LeaveTypeStatus,
    NotificationEvent,
    UserRole,
)
from hr_leave.common.exceptions import (
    AppException,
    BadRequestException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    register_exception_handlers,
)
from hr_leave.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "HolidayType",
    "LeaveStatus",
    "LeaveTypeStatus",
    "NotificationEvent",
    "UserRole",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "UNKNOWN_USER_NAME",
    "WEEKEND_DAYS",
    # Exceptions
    "AppException",
    "BadRequestException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "UnauthorizedException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
