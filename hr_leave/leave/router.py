"""Leave router — apply, cancel, approve/reject, balances, types, allocation.

All endpoints require authentication. Approver and HR endpoints enforce role
checks here; services receive resolved tenant and user ids only.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.auth.dependencies import CurrentUser, get_current_user, require_role
from hr_leave.common.constants import LeaveStatus, UserRole
from hr_leave.common.pagination import PaginatedResponse, PaginationParams
from hr_leave.common.rate_limit import limiter
from hr_leave.config import settings
from hr_leave.database import get_db
from hr_leave.directory.client import UserDirectory, get_user_directory
from hr_leave.leave.schemas import (
    AllocationOut,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveReviewRequest,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeStatusUpdate,
)
from hr_leave.leave.service import LeaveService
from hr_leave.notifications.service import NotificationService, get_notification_service

router = APIRouter(prefix="", tags=["leave"])

_approver = require_role(UserRole.manager, UserRole.hr_admin)
_hr_admin = require_role(UserRole.hr_admin)


async def _commit_then_notify(db: AsyncSession, notifier: NotificationService) -> None:
    """Commit the transition, then deliver its queued events. Row locks are
    released before any webhook call goes out."""
    await db.commit()
    await notifier.flush()


# ── POST /apply ─────────────────────────────────────────────────────

@router.post("/apply", response_model=LeaveRequestOut, status_code=201)
@limiter.limit(settings.RATE_LIMIT_APPLY)
async def apply_leave(
    request: Request,
    body: LeaveRequestCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    directory: UserDirectory = Depends(get_user_directory),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Apply for leave. Validates range, notice, max days, balance and overlap.

    The start year's balances are allocated and committed first, so a user's
    first request of a year does not depend on a prior balances read or
    rollover.
    """
    await LeaveService.ensure_allocated(
        db, user.tenant_id, user.user_id, body.start_date.year, actor_id=user.user_id,
    )
    await db.commit()
    result = await LeaveService.apply_leave(
        db, user.tenant_id, user.user_id, body,
        directory=directory, notifier=notifier,
    )
    await _commit_then_notify(db, notifier)
    return result


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def my_requests(
    status: Optional[LeaveStatus] = Query(None),
    params: PaginationParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    directory: UserDirectory = Depends(get_user_directory),
):
    """The caller's own leave requests, newest first."""
    return await LeaveService.list_my_requests(
        db, user.tenant_id, user.user_id, params,
        status=status, directory=directory,
    )


# ── PUT /requests/{id}/cancel ───────────────────────────────────────

@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    directory: UserDirectory = Depends(get_user_directory),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Cancel own pending leave request. Returns the days to available."""
    result = await LeaveService.cancel_leave(
        db, user.tenant_id, request_id, user.user_id,
        directory=directory, notifier=notifier,
    )
    await _commit_then_notify(db, notifier)
    return result


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: Optional[LeaveReviewRequest] = None,
    user: CurrentUser = Depends(_approver),
    db: AsyncSession = Depends(get_db),
    directory: UserDirectory = Depends(get_user_directory),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Approve a pending leave request. Moves the days from pending to used."""
    result = await LeaveService.approve_leave(
        db, user.tenant_id, request_id, user.user_id,
        comments=body.comments if body else None,
        directory=directory, notifier=notifier,
    )
    await _commit_then_notify(db, notifier)
    return result


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: Optional[LeaveReviewRequest] = None,
    user: CurrentUser = Depends(_approver),
    db: AsyncSession = Depends(get_db),
    directory: UserDirectory = Depends(get_user_directory),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Reject a pending leave request. Returns the days to available."""
    result = await LeaveService.reject_leave(
        db, user.tenant_id, request_id, user.user_id,
        body.comments if body else None,
        directory=directory, notifier=notifier,
    )
    await _commit_then_notify(db, notifier)
    return result


# ── GET /pending-approvals ──────────────────────────────────────────

@router.get("/pending-approvals", response_model=PaginatedResponse[LeaveRequestOut])
async def pending_approvals(
    params: PaginationParams = Depends(),
    user: CurrentUser = Depends(_approver),
    db: AsyncSession = Depends(get_db),
    directory: UserDirectory = Depends(get_user_directory),
):
    return await LeaveService.list_pending_approvals(
        db, user.tenant_id, params, directory=directory,
    )


# ── GET /team-calendar ──────────────────────────────────────────────

@router.get("/team-calendar", response_model=list[LeaveRequestOut])
async def team_calendar(
    start_date: date = Query(...),
    end_date: date = Query(...),
    user: CurrentUser = Depends(_approver),
    db: AsyncSession = Depends(get_db),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Approved leaves overlapping the window."""
    return await LeaveService.get_team_calendar(
        db, user.tenant_id, start_date, end_date, directory=directory,
    )


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def get_balances(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's balances for a year (default: current). Missing rows are allocated."""
    return await LeaveService.get_balances(db, user.tenant_id, user.user_id, year)


# ── Leave types ─────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_types(db, user.tenant_id)


@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    user: CurrentUser = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.create_leave_type(
        db, user.tenant_id, body, actor_id=user.user_id,
    )


@router.patch("/types/{leave_type_id}/status", response_model=LeaveTypeOut)
async def set_leave_type_status(
    leave_type_id: uuid.UUID,
    body: LeaveTypeStatusUpdate,
    user: CurrentUser = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    """Activate or deactivate a leave type. Inactive types are not allocated."""
    return await LeaveService.set_leave_type_status(
        db, user.tenant_id, leave_type_id, body.status, actor_id=user.user_id,
    )


# ── POST /allocations/{year} ────────────────────────────────────────

@router.post("/allocations/{year}", response_model=AllocationOut)
async def allocate_year(
    year: int,
    user: CurrentUser = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    """Year rollover for every user holding balances in the previous year."""
    users, created = await LeaveService.allocate_year(
        db, user.tenant_id, year, actor_id=user.user_id,
    )
    return AllocationOut(year=year, users=users, balances_created=created)
