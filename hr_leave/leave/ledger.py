"""Leave balance ledger: seeding and the five balance mutation primitives.

Every primitive runs inside the caller's transaction (see ``atomic``).  It
row-locks the balance, applies its arithmetic, re-checks the ledger
invariant and flushes:

    current_balance + used_balance == accrued_balance + carry_forward_balance

Pending days are a reservation against current_balance and sit outside
that sum; they must stay non-negative, as must used days.

Only ``LeaveRequestService`` calls the mutation primitives.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.exceptions import (
    NotFoundException,
    StoreException,
    ValidationException,
)
from hr_leave.leave.models import ZERO, LeaveBalance, LeaveType

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class LeaveLedger:
    """Static balance operations keyed by (employee, leave type, year)."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _lock(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> LeaveBalance:
        """SELECT … FOR UPDATE the balance row, overwriting any cached copy."""
        result = await db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        balance = result.scalars().first()
        if balance is None:
            raise NotFoundException(
                "LeaveBalance", f"{employee_id}/{leave_type_id}/{year}"
            )
        return balance

    @staticmethod
    async def _verify_and_flush(db: AsyncSession, balance: LeaveBalance) -> LeaveBalance:
        if not balance.is_consistent:
            logger.error("Ledger invariant violated, rolling back: %r", balance)
            raise StoreException()
        await db.flush()
        return balance

    @staticmethod
    def _carry_forward(leave_type: LeaveType, prior: LeaveBalance | None) -> Decimal:
        if not leave_type.allow_carryover or prior is None:
            return ZERO
        unused = max(prior.current_balance - prior.pending_balance, ZERO)
        return min(unused, leave_type.max_carryover_days)

    # ─────────────────────────────────────────────────────────────────
    # Seeding
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def ensure_initialized(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> None:
        """Create the missing balance rows of *employee_id* for *year*.

        One row per active leave type, accrued at ``max_days_per_year``
        plus any carry-forward from the previous year.  Rows are written
        with ``INSERT … ON CONFLICT DO NOTHING`` so concurrent callers
        never duplicate a row; the first committer wins.
        """
        types = (
            await db.execute(select(LeaveType).where(LeaveType.is_active.is_(True)))
        ).scalars().all()
        if not types:
            return

        prior_rows = (
            await db.execute(
                select(LeaveBalance).where(
                    LeaveBalance.employee_id == employee_id,
                    LeaveBalance.year == year - 1,
                )
            )
        ).scalars().all()
        prior_by_type = {b.leave_type_id: b for b in prior_rows}

        rows = []
        for lt in types:
            accrued = lt.max_days_per_year
            carry = LeaveLedger._carry_forward(lt, prior_by_type.get(lt.id))
            rows.append(
                {
                    "id": uuid.uuid4(),
                    "employee_id": employee_id,
                    "leave_type_id": lt.id,
                    "year": year,
                    "accrued_balance": accrued,
                    "current_balance": accrued + carry,
                    "used_balance": ZERO,
                    "pending_balance": ZERO,
                    "carry_forward_balance": carry,
                }
            )

        insert = _UPSERT_DIALECTS[db.get_bind().dialect.name]
        stmt = (
            insert(LeaveBalance)
            .values(rows)
            .on_conflict_do_nothing(
                index_elements=["employee_id", "leave_type_id", "year"]
            )
        )
        await db.execute(stmt)

    # ─────────────────────────────────────────────────────────────────
    # Mutation primitives
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reserve_pending(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        days: Decimal,
        *,
        allow_negative: bool = True,
    ) -> LeaveBalance:
        """pending += days.  Paired with request creation."""
        balance = await LeaveLedger._lock(db, employee_id, leave_type_id, year)
        if not allow_negative and days > balance.available_balance:
            raise ValidationException(
                {"days_requested": [
                    f"Insufficient balance. Available: {balance.available_balance}, "
                    f"requested: {days}."
                ]}
            )
        balance.pending_balance += days
        logger.debug("reserve_pending %s -> %r", days, balance)
        return await LeaveLedger._verify_and_flush(db, balance)

    @staticmethod
    async def adjust_pending(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        delta: Decimal,
        *,
        allow_negative: bool = True,
    ) -> LeaveBalance:
        """pending += delta for an edited pending request; delta may be negative."""
        balance = await LeaveLedger._lock(db, employee_id, leave_type_id, year)
        if not allow_negative and delta > balance.available_balance:
            raise ValidationException(
                {"days_requested": [
                    f"Insufficient balance. Available: {balance.available_balance}, "
                    f"additional days requested: {delta}."
                ]}
            )
        balance.pending_balance += delta
        logger.debug("adjust_pending %s -> %r", delta, balance)
        return await LeaveLedger._verify_and_flush(db, balance)

    @staticmethod
    async def commit_approval(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        days: Decimal,
        *,
        allow_negative: bool,
    ) -> LeaveBalance:
        """Move *days* from pending to used and take them off current."""
        balance = await LeaveLedger._lock(db, employee_id, leave_type_id, year)
        if not allow_negative and balance.current_balance - days < 0:
            raise ValidationException(
                {"days_requested": [
                    f"Approval would overdraw the balance. Current: "
                    f"{balance.current_balance}, requested: {days}."
                ]}
            )
        balance.pending_balance -= days
        balance.used_balance += days
        balance.current_balance -= days
        logger.debug("commit_approval %s -> %r", days, balance)
        return await LeaveLedger._verify_and_flush(db, balance)

    @staticmethod
    async def release_pending(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        days: Decimal,
    ) -> LeaveBalance:
        """pending -= days.  Paired with rejection."""
        balance = await LeaveLedger._lock(db, employee_id, leave_type_id, year)
        balance.pending_balance -= days
        logger.debug("release_pending %s -> %r", days, balance)
        return await LeaveLedger._verify_and_flush(db, balance)

    @staticmethod
    async def restore_from_cancellation(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        days: Decimal,
    ) -> LeaveBalance:
        """Give back the days of a cancelled approved request."""
        balance = await LeaveLedger._lock(db, employee_id, leave_type_id, year)
        balance.current_balance += days
        balance.used_balance -= days
        logger.debug("restore_from_cancellation %s -> %r", days, balance)
        return await LeaveLedger._verify_and_flush(db, balance)
