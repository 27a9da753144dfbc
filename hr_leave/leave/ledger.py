"""Leave balance ledger — the only code that moves balance counters.

Every movement is a transfer between ``available``, ``pending`` and ``used``,
so the row total never changes. Writes are a compare-and-swap on ``version``:
the row is read under ``SELECT ... FOR UPDATE`` (a real row lock on
PostgreSQL), and the ``UPDATE`` only lands if nobody bumped the version in
between. A lost race re-reads the row, re-runs the caller's check and tries
again, up to ``BALANCE_UPDATE_MAX_RETRIES`` times.
"""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, NamedTuple, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.exceptions import AppException, ConflictError
from hr_leave.config import settings
from hr_leave.leave.models import LeaveBalance

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

_COUNTERS = ("available", "pending", "used")


class BalanceKey(NamedTuple):
    tenant_id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int


class Transition(enum.Enum):
    """Signed multipliers for (available, pending, used)."""

    reserve = (-1, 1, 0)    # apply
    consume = (0, -1, 1)    # approve
    release = (1, -1, 0)    # reject / cancel

    def deltas(self, days: Decimal) -> dict[str, Decimal]:
        return {name: sign * days for name, sign in zip(_COUNTERS, self.value)}


async def load_balance(
    db: AsyncSession,
    key: BalanceKey,
    *,
    lock: bool = False,
) -> Optional[LeaveBalance]:
    """Fetch the ledger row for *key*, always refreshing from the database."""
    query = (
        select(LeaveBalance)
        .where(
            LeaveBalance.tenant_id == key.tenant_id,
            LeaveBalance.user_id == key.user_id,
            LeaveBalance.leave_type_id == key.leave_type_id,
            LeaveBalance.year == key.year,
        )
        .execution_options(populate_existing=True)
    )
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalars().first()


async def compare_and_swap(
    db: AsyncSession,
    balance: LeaveBalance,
    transition: Transition,
    days: Decimal,
) -> bool:
    """Apply *transition* for *days* iff the row still has ``balance.version``.

    Returns False when another writer got there first.
    """
    deltas = transition.deltas(days)
    for name, delta in deltas.items():
        if getattr(balance, name) + delta < ZERO:
            raise ConflictError(
                name,
                getattr(balance, name),
                detail=(
                    f"Leave balance {balance.id} cannot move {days} day(s) "
                    f"({transition.name}): {name} would go negative."
                ),
            )

    result = await db.execute(
        update(LeaveBalance)
        .where(
            LeaveBalance.id == balance.id,
            LeaveBalance.version == balance.version,
        )
        .values(
            available=LeaveBalance.available + deltas["available"],
            pending=LeaveBalance.pending + deltas["pending"],
            used=LeaveBalance.used + deltas["used"],
            version=LeaveBalance.version + 1,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    await db.refresh(balance, attribute_names=[*_COUNTERS, "version", "updated_at"])
    return True


async def apply_transition(
    db: AsyncSession,
    key: BalanceKey,
    transition: Transition,
    days: Decimal,
    *,
    missing: Callable[[], AppException],
    check: Optional[Callable[[LeaveBalance], None]] = None,
) -> LeaveBalance:
    """Move *days* on the row for *key* with bounded optimistic retries.

    *missing* builds the error raised when the row does not exist; *check*
    runs against each fresh read and raises to veto the move.
    """
    attempts = max(1, settings.BALANCE_UPDATE_MAX_RETRIES)
    for attempt in range(1, attempts + 1):
        balance = await load_balance(db, key, lock=True)
        if balance is None:
            raise missing()
        if check is not None:
            check(balance)
        if await compare_and_swap(db, balance, transition, days):
            logger.debug(
                "Balance %s %s %s day(s) -> available=%s pending=%s used=%s",
                balance.id, transition.name, days,
                balance.available, balance.pending, balance.used,
            )
            return balance
        logger.warning(
            "Concurrent update on leave balance %s (attempt %d/%d)",
            balance.id, attempt, attempts,
        )

    raise ConflictError(
        "leave_balance",
        key.leave_type_id,
        detail="Leave balance was modified concurrently. Please retry.",
    )
