"""Leave service layer — catalog, allocation, day counting, request lifecycle.

Business logic:
  - Leave type catalog per tenant (unique codes, active/inactive)
  - Yearly allocation with capped carry-forward, idempotent per ledger key
  - Working-day count excluding weekends and non-optional holidays
  - Apply / approve / reject / cancel, each moving days between the
    available, pending and used counters of the balance ledger
  - My requests, tenant-wide pending approvals, team calendar
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import distinct, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.audit import create_audit_entry
from hr_leave.common.constants import (
    WEEKEND_DAYS,
    LeaveStatus,
    LeaveTypeStatus,
    NotificationEvent,
)
from hr_leave.common.exceptions import (
    AppException,
    BadRequestException,
    ConflictError,
    NotFoundException,
)
from hr_leave.common.pagination import PaginatedResponse, PaginationParams, paginate
from hr_leave.config import settings
from hr_leave.directory.client import PLACEHOLDER, UserDirectory, UserDisplayInfo
from hr_leave.holidays.service import HolidayService
from hr_leave.leave.ledger import BalanceKey, Transition, apply_transition, load_balance
from hr_leave.leave.models import LeaveBalance, LeaveRequest, LeaveType
from hr_leave.leave.schemas import (
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeCreate,
    LeaveTypeOut,
)
from hr_leave.notifications.service import NotificationService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# ON CONFLICT capable insert constructs, keyed by dialect name
_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: types, allocation, balances, requests, approvals."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def calculate_working_days(
        start: date,
        end: date,
        closed_dates: set[date],
    ) -> Decimal:
        """Count dates in ``[start, end]`` that are neither Saturday/Sunday
        nor in *closed_dates* (non-optional holidays). Whole days only."""

        total = 0
        current = start
        while current <= end:
            if current.weekday() not in WEEKEND_DAYS and current not in closed_dates:
                total += 1
            current += timedelta(days=1)
        return Decimal(total)

    @staticmethod
    async def count_leave_days(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        start: date,
        end: date,
    ) -> Decimal:
        """Working days a leave from *start* to *end* consumes for the tenant."""
        if end < start:
            return ZERO
        closed = await HolidayService.get_closed_dates(db, tenant_id, start, end)
        return LeaveService.calculate_working_days(start, end, closed)

    @staticmethod
    async def _get_leave_type(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        leave_type_id: uuid.UUID,
    ) -> LeaveType:
        result = await db.execute(
            select(LeaveType).where(
                LeaveType.id == leave_type_id,
                LeaveType.tenant_id == tenant_id,
            )
        )
        leave_type = result.scalars().first()
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def _get_request(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        request_id: uuid.UUID,
    ) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.id == request_id,
                LeaveRequest.tenant_id == tenant_id,
            )
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    async def _transition_request(
        db: AsyncSession,
        leave_req: LeaveRequest,
        new_status: LeaveStatus,
        **values: Any,
    ) -> None:
        """Move *leave_req* out of PENDING. The ``status = pending`` guard
        makes the transition succeed at most once under concurrent callers."""

        if leave_req.status != LeaveStatus.pending:
            raise BadRequestException(
                f"Leave request is not pending (status: {leave_req.status.value}).",
                field="status",
            )

        now = _utcnow()
        result = await db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == leave_req.id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .values(status=new_status, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise BadRequestException(
                "Leave request is not pending (it was processed concurrently).",
                field="status",
            )
        await db.refresh(
            leave_req, attribute_names=["status", "updated_at", *values.keys()],
        )

    @staticmethod
    def _balance_key(leave_req: LeaveRequest) -> BalanceKey:
        return BalanceKey(
            leave_req.tenant_id,
            leave_req.user_id,
            leave_req.leave_type_id,
            leave_req.start_date.year,
        )

    @staticmethod
    async def _display_info(
        directory: Optional[UserDirectory],
        user_id: uuid.UUID,
    ) -> UserDisplayInfo:
        if directory is None:
            return PLACEHOLDER
        return await directory.get_user_display_info(user_id)

    @staticmethod
    def _build_request_response(
        leave_req: LeaveRequest,
        info: UserDisplayInfo = PLACEHOLDER,
    ) -> LeaveRequestOut:
        """Build LeaveRequestOut from ORM plus the applicant's name/email."""
        out = LeaveRequestOut.model_validate(leave_req)
        out.user_name = info.name
        out.user_email = info.email
        return out

    @staticmethod
    async def _notify(
        notifier: Optional[NotificationService],
        event: NotificationEvent,
        leave_req: LeaveRequest,
        **extra: Any,
    ) -> None:
        if notifier is None:
            return
        payload = {
            "tenant_id": str(leave_req.tenant_id),
            "request_id": str(leave_req.id),
            "user_id": str(leave_req.user_id),
            "leave_type_id": str(leave_req.leave_type_id),
            "start_date": leave_req.start_date.isoformat(),
            "end_date": leave_req.end_date.isoformat(),
            "total_days": str(leave_req.total_days),
            "status": leave_req.status.value,
        }
        payload.update({k: v for k, v in extra.items() if v is not None})
        await notifier.notify(event, payload)

    # ─────────────────────────────────────────────────────────────────
    # Leave Types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _code_taken(db: AsyncSession, tenant_id: uuid.UUID, code: str) -> bool:
        result = await db.execute(
            select(LeaveType.id).where(
                LeaveType.tenant_id == tenant_id,
                LeaveType.code == code,
            )
        )
        return result.first() is not None

    @staticmethod
    async def create_leave_type(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        data: LeaveTypeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveTypeOut:
        """Define a custom leave type. Codes are unique per tenant, whatever
        their status, so a retired code is never reused."""

        logger.info("Creating leave type %s for tenant %s", data.code, tenant_id)

        if await LeaveService._code_taken(db, tenant_id, data.code):
            raise ConflictError("code", data.code)

        leave_type = LeaveType(
            tenant_id=tenant_id,
            code=data.code,
            name=data.name,
            description=data.description,
            is_system_defined=False,
            days_per_year=data.days_per_year,
            allow_carry_forward=data.allow_carry_forward,
            max_carry_forward_days=data.max_carry_forward_days,
            min_notice_days=data.min_notice_days,
            max_consecutive_days=data.max_consecutive_days,
            is_paid=data.is_paid,
            color=data.color,
            status=LeaveTypeStatus.active,
        )
        db.add(leave_type)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            err = str(exc.orig)
            if "uq_leave_type_tenant_code" in err or "leave_types.code" in err:
                raise ConflictError("code", data.code)
            raise

        await create_audit_entry(
            db,
            tenant_id=tenant_id,
            action="create",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values={
                "code": leave_type.code,
                "days_per_year": str(leave_type.days_per_year),
            },
        )
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def get_leave_types(
        db: AsyncSession,
        tenant_id: uuid.UUID,
    ) -> list[LeaveTypeOut]:
        """List the tenant's active leave types."""
        result = await db.execute(
            select(LeaveType)
            .where(
                LeaveType.tenant_id == tenant_id,
                LeaveType.status == LeaveTypeStatus.active,
            )
            .order_by(LeaveType.name)
        )
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def get_leave_type(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        leave_type_id: uuid.UUID,
    ) -> LeaveTypeOut:
        leave_type = await LeaveService._get_leave_type(db, tenant_id, leave_type_id)
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def set_leave_type_status(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        status: LeaveTypeStatus,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveTypeOut:
        """Activate or retire a leave type. Entitlement fields stay untouched."""
        leave_type = await LeaveService._get_leave_type(db, tenant_id, leave_type_id)
        old_status = leave_type.status
        if old_status != status:
            leave_type.status = status
            leave_type.updated_at = _utcnow()
            await db.flush()
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="update",
                entity_type="leave_type",
                entity_id=leave_type.id,
                actor_id=actor_id,
                old_values={"status": old_status.value},
                new_values={"status": status.value},
            )
        return LeaveTypeOut.model_validate(leave_type)

    # ─────────────────────────────────────────────────────────────────
    # Allocation
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _carry_forward(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
    ) -> Decimal:
        """Unused days brought into *year*, capped by the type's maximum."""
        if not leave_type.allow_carry_forward or year <= settings.CARRY_FORWARD_MIN_YEAR:
            return ZERO

        result = await db.execute(
            select(LeaveBalance.available).where(
                LeaveBalance.tenant_id == tenant_id,
                LeaveBalance.user_id == user_id,
                LeaveBalance.leave_type_id == leave_type.id,
                LeaveBalance.year == year - 1,
            )
        )
        previous_available = result.scalar()
        if previous_available is None:
            return ZERO
        cap = leave_type.max_carry_forward_days or ZERO
        return max(ZERO, min(Decimal(previous_available), cap))

    @staticmethod
    async def ensure_allocated(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        year: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Create the user's balance row for every active leave type that has
        none for *year*. Returns the number of rows created.

        The insert is ``ON CONFLICT DO NOTHING`` on the ledger key, so
        repeated or concurrent first calls leave exactly one row and the
        losers are no-ops.
        """
        dialect = db.get_bind().dialect.name
        insert = _INSERT_BY_DIALECT.get(dialect)
        if insert is None:
            logger.error("No ON CONFLICT insert registered for dialect %s", dialect)
            raise AppException(f"Balance allocation is not supported on {dialect}.")

        types_result = await db.execute(
            select(LeaveType).where(
                LeaveType.tenant_id == tenant_id,
                LeaveType.status == LeaveTypeStatus.active,
            )
        )
        existing_result = await db.execute(
            select(LeaveBalance.leave_type_id).where(
                LeaveBalance.tenant_id == tenant_id,
                LeaveBalance.user_id == user_id,
                LeaveBalance.year == year,
            )
        )
        already = {row[0] for row in existing_result.all()}

        created = 0
        now = _utcnow()
        for leave_type in types_result.scalars().all():
            if leave_type.id in already:
                continue

            allocated = leave_type.days_per_year or ZERO
            carry_forward = await LeaveService._carry_forward(
                db, tenant_id, user_id, leave_type, year,
            )
            balance_id = uuid.uuid4()
            stmt = (
                insert(LeaveBalance)
                .values(
                    id=balance_id,
                    tenant_id=tenant_id,
                    user_id=user_id,
                    leave_type_id=leave_type.id,
                    year=year,
                    total_allocated=allocated,
                    used=ZERO,
                    pending=ZERO,
                    available=allocated + carry_forward,
                    carry_forward=carry_forward,
                    version=0,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(
                    index_elements=["tenant_id", "user_id", "leave_type_id", "year"],
                )
            )
            result = await db.execute(stmt)
            if result.rowcount != 1:
                # Lost a race with a concurrent allocation; that row stands.
                continue

            created += 1
            logger.info(
                "Allocated %s (+%s carried) days of %s for user %s in %s",
                allocated, carry_forward, leave_type.code, user_id, year,
            )
            await create_audit_entry(
                db,
                tenant_id=tenant_id,
                action="allocate",
                entity_type="leave_balance",
                entity_id=balance_id,
                actor_id=actor_id,
                new_values={
                    "leave_type": leave_type.code,
                    "year": year,
                    "total_allocated": str(allocated),
                    "carry_forward": str(carry_forward),
                },
            )
        return created

    @staticmethod
    async def allocate_year(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        year: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> tuple[int, int]:
        """Year rollover: allocate *year* for every user who held a balance
        in the previous year. Returns ``(users, balances_created)``."""

        result = await db.execute(
            select(distinct(LeaveBalance.user_id)).where(
                LeaveBalance.tenant_id == tenant_id,
                LeaveBalance.year == year - 1,
            )
        )
        user_ids = [row[0] for row in result.all()]

        created = 0
        for user_id in user_ids:
            created += await LeaveService.ensure_allocated(
                db, tenant_id, user_id, year, actor_id=actor_id,
            )
        logger.info(
            "Year %s rollover for tenant %s: %d users, %d balances created",
            year, tenant_id, len(user_ids), created,
        )
        return len(user_ids), created

    # ─────────────────────────────────────────────────────────────────
    # Balance
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[LeaveBalanceOut]:
        """All balances of a user for *year* (default: current), allocating
        missing rows first."""

        target_year = year or _utcnow().year
        await LeaveService.ensure_allocated(db, tenant_id, user_id, target_year)

        result = await db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.tenant_id == tenant_id,
                LeaveBalance.user_id == user_id,
                LeaveBalance.year == target_year,
            )
            .execution_options(populate_existing=True)
        )
        balances = sorted(result.scalars().all(), key=lambda b: b.leave_type.name)
        return [LeaveBalanceOut.model_validate(b) for b in balances]

    # ─────────────────────────────────────────────────────────────────
    # Apply Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        directory: Optional[UserDirectory] = None,
        notifier: Optional[NotificationService] = None,
    ) -> LeaveRequestOut:
        """Apply for leave with full validation:
        - Valid date range
        - Advance notice and max consecutive days of the leave type
        - Balance row present for the start year with enough available days
        - No overlapping pending/approved request of the same user
        Then reserves the days (available → pending) and stores a PENDING request.
        """

        now = _utcnow()
        logger.info(
            "User %s applying for leave from %s to %s",
            user_id, data.start_date, data.end_date,
        )

        if data.end_date < data.start_date:
            raise BadRequestException(
                "End date cannot be before start date.", field="end_date",
            )

        leave_type = await LeaveService._get_leave_type(db, tenant_id, data.leave_type_id)

        total_days = await LeaveService.count_leave_days(
            db, tenant_id, data.start_date, data.end_date,
        )

        # ── Advance notice check ────────────────────────────────────
        if leave_type.min_notice_days and leave_type.min_notice_days > 0:
            days_ahead = (data.start_date - now.date()).days
            if days_ahead < leave_type.min_notice_days:
                raise BadRequestException(
                    f"Minimum notice period of {leave_type.min_notice_days} "
                    "days is required.",
                    field="start_date",
                )

        # ── Max consecutive days check ──────────────────────────────
        if (
            leave_type.max_consecutive_days is not None
            and total_days > leave_type.max_consecutive_days
        ):
            raise BadRequestException(
                f"Maximum consecutive days allowed is {leave_type.max_consecutive_days}.",
                field="end_date",
            )

        key = BalanceKey(tenant_id, user_id, leave_type.id, data.start_date.year)

        def _check_available(balance: LeaveBalance) -> None:
            if balance.available < total_days:
                raise BadRequestException(
                    f"Insufficient leave balance. Available: {balance.available}, "
                    f"Requested: {total_days}.",
                    field="balance",
                )

        def _no_balance() -> BadRequestException:
            return BadRequestException(
                f"No leave balance found for {leave_type.name} in {key.year}.",
                field="leave_type_id",
            )

        # Outbound lookup before any row lock is taken
        info = await LeaveService._display_info(directory, user_id)

        # Lock the balance row first so concurrent applications on the same
        # key run the checks below one at a time.
        locked = await load_balance(db, key, lock=True)
        if locked is None:
            raise _no_balance()
        _check_available(locked)

        # ── Check overlapping leaves ────────────────────────────────
        overlap_result = await db.execute(
            select(func.count()).select_from(LeaveRequest).where(
                LeaveRequest.tenant_id == tenant_id,
                LeaveRequest.user_id == user_id,
                LeaveRequest.status.in_([LeaveStatus.pending, LeaveStatus.approved]),
                LeaveRequest.start_date <= data.end_date,
                LeaveRequest.end_date >= data.start_date,
            )
        )
        if overlap_result.scalar_one() > 0:
            raise BadRequestException(
                "You already have a leave request overlapping these dates.",
                field="start_date",
            )

        balance = await apply_transition(
            db,
            key,
            Transition.reserve,
            total_days,
            missing=_no_balance,
            check=_check_available,
        )

        leave_request = LeaveRequest(
            tenant_id=tenant_id,
            user_id=user_id,
            leave_type_id=leave_type.id,
            leave_type=leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total_days,
            reason=data.reason,
            status=LeaveStatus.pending,
            applied_date=now,
            approved_date=None,
            rejected_date=None,
            cancelled_date=None,
            rejection_reason=None,
            reviewed_by=None,
            reviewer_comments=None,
        )
        db.add(leave_request)
        await db.flush()

        await create_audit_entry(
            db,
            tenant_id=tenant_id,
            action="create",
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=user_id,
            new_values={
                "leave_type": leave_type.code,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "total_days": str(total_days),
                "balance_available": str(balance.available),
            },
        )
        logger.info("Leave request %s created (%s days)", leave_request.id, total_days)

        await LeaveService._notify(notifier, NotificationEvent.leave_applied, leave_request)
        return LeaveService._build_request_response(leave_request, info)

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject / Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        *,
        comments: Optional[str] = None,
        directory: Optional[UserDirectory] = None,
        notifier: Optional[NotificationService] = None,
    ) -> LeaveRequestOut:
        """Approve a pending request: pending → used."""

        logger.info("Approving leave request %s by %s", request_id, approver_id)
        leave_req = await LeaveService._get_request(db, tenant_id, request_id)
        info = await LeaveService._display_info(directory, leave_req.user_id)

        await LeaveService._transition_request(
            db,
            leave_req,
            LeaveStatus.approved,
            approved_date=_utcnow(),
            reviewed_by=approver_id,
            reviewer_comments=comments,
        )
        await apply_transition(
            db,
            LeaveService._balance_key(leave_req),
            Transition.consume,
            leave_req.total_days,
            missing=lambda: NotFoundException("LeaveBalance", str(leave_req.id)),
        )

        await create_audit_entry(
            db,
            tenant_id=tenant_id,
            action="approve",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=approver_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.approved.value, "comments": comments},
        )
        logger.info("Leave request %s approved", request_id)

        await LeaveService._notify(
            notifier, NotificationEvent.leave_approved, leave_req,
            approver_id=str(approver_id), comments=comments,
        )
        return LeaveService._build_request_response(leave_req, info)

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        reason: Optional[str] = None,
        *,
        directory: Optional[UserDirectory] = None,
        notifier: Optional[NotificationService] = None,
    ) -> LeaveRequestOut:
        """Reject a pending request: pending → available."""

        logger.info("Rejecting leave request %s by %s", request_id, approver_id)
        leave_req = await LeaveService._get_request(db, tenant_id, request_id)
        info = await LeaveService._display_info(directory, leave_req.user_id)

        await LeaveService._transition_request(
            db,
            leave_req,
            LeaveStatus.rejected,
            rejected_date=_utcnow(),
            rejection_reason=reason,
            reviewed_by=approver_id,
        )
        await apply_transition(
            db,
            LeaveService._balance_key(leave_req),
            Transition.release,
            leave_req.total_days,
            missing=lambda: NotFoundException("LeaveBalance", str(leave_req.id)),
        )

        await create_audit_entry(
            db,
            tenant_id=tenant_id,
            action="reject",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=approver_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.rejected.value, "reason": reason},
        )
        logger.info("Leave request %s rejected", request_id)

        await LeaveService._notify(
            notifier, NotificationEvent.leave_rejected, leave_req,
            approver_id=str(approver_id), reason=reason,
        )
        return LeaveService._build_request_response(leave_req, info)

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        request_id: uuid.UUID,
        user_id: uuid.UUID,
        *,
        directory: Optional[UserDirectory] = None,
        notifier: Optional[NotificationService] = None,
    ) -> LeaveRequestOut:
        """Cancel own pending request: pending → available."""

        logger.info("Cancelling leave request %s by user %s", request_id, user_id)
        leave_req = await LeaveService._get_request(db, tenant_id, request_id)

        if leave_req.user_id != user_id:
            raise BadRequestException(
                "You can only cancel your own leave requests.", field="request_id",
            )
        info = await LeaveService._display_info(directory, leave_req.user_id)

        await LeaveService._transition_request(
            db,
            leave_req,
            LeaveStatus.cancelled,
            cancelled_date=_utcnow(),
        )
        await apply_transition(
            db,
            LeaveService._balance_key(leave_req),
            Transition.release,
            leave_req.total_days,
            missing=lambda: NotFoundException("LeaveBalance", str(leave_req.id)),
        )

        await create_audit_entry(
            db,
            tenant_id=tenant_id,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=user_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.cancelled.value},
        )
        logger.info("Leave request %s cancelled", request_id)

        await LeaveService._notify(notifier, NotificationEvent.leave_cancelled, leave_req)
        return LeaveService._build_request_response(leave_req, info)

    # ─────────────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _paginate_requests(
        db: AsyncSession,
        query,
        params: PaginationParams,
        directory: Optional[UserDirectory],
    ) -> PaginatedResponse[LeaveRequestOut]:
        page = await paginate(db, query, params)
        return PaginatedResponse[LeaveRequestOut](
            data=[
                LeaveService._build_request_response(
                    r, await LeaveService._display_info(directory, r.user_id),
                )
                for r in page.data
            ],
            meta=page.meta,
        )

    @staticmethod
    async def list_my_requests(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        params: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        directory: Optional[UserDirectory] = None,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """A user's own requests, newest first."""
        query = (
            select(LeaveRequest)
            .where(
                LeaveRequest.tenant_id == tenant_id,
                LeaveRequest.user_id == user_id,
            )
            .order_by(LeaveRequest.applied_date.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        return await LeaveService._paginate_requests(db, query, params, directory)

    @staticmethod
    async def list_pending_approvals(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        params: PaginationParams,
        *,
        directory: Optional[UserDirectory] = None,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """Every pending request of the tenant, newest first. Approval is
        single-level, so any approver sees the whole queue."""
        query = (
            select(LeaveRequest)
            .where(
                LeaveRequest.tenant_id == tenant_id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .order_by(LeaveRequest.applied_date.desc())
        )
        return await LeaveService._paginate_requests(db, query, params, directory)

    @staticmethod
    async def get_team_calendar(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        start: date,
        end: date,
        *,
        directory: Optional[UserDirectory] = None,
    ) -> list[LeaveRequestOut]:
        """Approved requests overlapping ``[start, end]``."""
        if end < start:
            raise BadRequestException(
                "end_date cannot be before start_date.", field="end_date",
            )

        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.tenant_id == tenant_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
            .order_by(LeaveRequest.start_date)
        )
        return [
            LeaveService._build_request_response(
                r, await LeaveService._display_info(directory, r.user_id),
            )
            for r in result.scalars().all()
        ]
