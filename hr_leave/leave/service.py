"""Leave request service: the request lifecycle state machine.

Business logic:
  - create → pending (reserves the requested days on the ledger)
  - edit while pending (adjusts the reservation by the day delta)
  - approve / reject a pending request (commits or releases the reservation)
  - cancel an approved request (restores the used days)
  - request listing with filters, search, whitelisted sorting and pagination
  - balance lookup with lazy seeding

Each transition runs inside one ``atomic`` unit: the request row and the
balance row are locked, both are written, or neither is.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hr_leave.auth.policy import ensure_authority, required_tier
from hr_leave.auth.schemas import Actor
from hr_leave.common.constants import (
    DEFAULT_SORT,
    HALF_DAY,
    LEAVE_TRANSITIONS,
    MAX_REQUEST_SPAN_DAYS,
    LeaveDecision,
    LeaveStatus,
)
from hr_leave.common.exceptions import (
    ForbiddenException,
    InvalidStateTransition,
    NotFoundException,
    ValidationException,
)
from hr_leave.common.filters import apply_filters, apply_search, apply_sorting
from hr_leave.common.pagination import PaginatedResponse, PaginationParams, paginate
from hr_leave.database import atomic
from hr_leave.directory.models import Employee
from hr_leave.leave.ledger import LeaveLedger
from hr_leave.leave.models import LeaveBalance, LeaveRequest, LeaveType
from hr_leave.leave.schemas import (
    EmployeeBrief,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestFilters,
    LeaveRequestOut,
    LeaveRequestUpdate,
    LeaveTypeBrief,
)

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)

_REQUEST_FIELDS = tuple(
    name for name in LeaveRequestOut.model_fields if name not in ("employee", "leave_type")
)

_SORT_COLUMNS = {
    "created_at": LeaveRequest.created_at,
    "start_date": LeaveRequest.start_date,
    "end_date": LeaveRequest.end_date,
    "status": LeaveRequest.status,
    "days_requested": LeaveRequest.days_requested,
    "employee_name": Employee.first_name,
    "leave_type": LeaveType.name,
}

_FILTER_COLUMNS = {
    "employee_id": LeaveRequest.employee_id,
    "status": LeaveRequest.status,
    "leave_type_id": LeaveRequest.leave_type_id,
    "start_date": LeaveRequest.start_date,
    "end_date": LeaveRequest.end_date,
}

_SEARCH_COLUMNS = (
    Employee.first_name,
    Employee.last_name,
    Employee.employee_code,
    LeaveType.name,
    LeaveRequest.reason,
)


# ═════════════════════════════════════════════════════════════════════
# LeaveRequestService
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestService:
    """Async leave request operations: lifecycle transitions, listing, balances."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def build_employee_brief(emp: Employee) -> EmployeeBrief:
        return EmployeeBrief(
            id=emp.id,
            employee_code=emp.employee_code,
            display_name=emp.shown_name,
            team_id=emp.team_id,
            department_id=emp.department_id,
            profile_photo_url=emp.profile_photo_url,
        )

    @staticmethod
    def build_leave_type_brief(lt: LeaveType) -> LeaveTypeBrief:
        return LeaveTypeBrief(
            id=lt.id, code=lt.code, name=lt.name, color=lt.color, is_paid=lt.is_paid
        )

    @staticmethod
    def _build_request_response(
        req: LeaveRequest,
        employee: Employee,
        leave_type: LeaveType,
    ) -> LeaveRequestOut:
        """Build LeaveRequestOut from the row plus its already-loaded parents."""
        return LeaveRequestOut(
            **{name: getattr(req, name) for name in _REQUEST_FIELDS},
            employee=LeaveRequestService.build_employee_brief(employee),
            leave_type=LeaveRequestService.build_leave_type_brief(leave_type),
        )

    @staticmethod
    async def _lock_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        """Load and row-lock a request with its employee and leave type."""
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        req = result.scalars().first()
        if req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return req

    @staticmethod
    def _ensure_transition(req: LeaveRequest, target: LeaveStatus) -> None:
        if target not in LEAVE_TRANSITIONS[req.status]:
            raise InvalidStateTransition("LeaveRequest", req.status, target)

    @staticmethod
    def _check_eligibility(employee: Employee, leave_type: LeaveType, start_date: date) -> None:
        """Gender and minimum-service rules of the leave type."""
        if leave_type.applicable_gender and employee.gender:
            if employee.gender != leave_type.applicable_gender:
                raise ValidationException(
                    {"leave_type_id": [
                        f"{leave_type.name} is only applicable for "
                        f"{leave_type.applicable_gender.value} employees."
                    ]}
                )
        if leave_type.min_service_months:
            served = employee.service_months(start_date)
            if served < leave_type.min_service_months:
                raise ValidationException(
                    {"leave_type_id": [
                        f"{leave_type.name} requires {leave_type.min_service_months} "
                        f"months of service; {served} completed by {start_date}."
                    ]}
                )

    @staticmethod
    def _check_days(
        leave_type: LeaveType,
        start_date: date,
        end_date: date,
        days: Decimal,
    ) -> None:
        """Day count must fit the date span and the type's granularity."""
        if start_date > end_date:
            raise ValidationException(
                {"end_date": ["end_date must be on or after start_date."]}
            )
        if days <= 0:
            raise ValidationException(
                {"days_requested": ["days_requested must be greater than zero."]}
            )
        if (end_date - start_date).days > MAX_REQUEST_SPAN_DAYS:
            raise ValidationException(
                {"end_date": [
                    f"Leave request cannot span more than {MAX_REQUEST_SPAN_DAYS} days."
                ]}
            )
        span = (end_date - start_date).days + 1
        if days > span:
            raise ValidationException(
                {"days_requested": [
                    f"{days} days requested but the range only covers {span} days."
                ]}
            )
        step = Decimal(HALF_DAY) if leave_type.allow_half_day else Decimal("1")
        if days % step != 0:
            raise ValidationException(
                {"days_requested": [
                    f"{leave_type.name} must be requested in steps of {step} days."
                ]}
            )

    @staticmethod
    async def _lock_employee(db: AsyncSession, employee_id: uuid.UUID) -> None:
        """Row-lock the employee so overlap checks for one person run one at a time."""
        await db.execute(
            select(Employee.id).where(Employee.id == employee_id).with_for_update()
        )

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(_ACTIVE_STATUSES),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        if (await db.execute(query)).scalar_one():
            raise ValidationException(
                {"start_date": [
                    "An overlapping pending or approved leave request already exists."
                ]}
            )

    # ─────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_request(
        db: AsyncSession,
        actor: Actor,
        data: LeaveRequestCreate,
        *,
        year: int,
    ) -> LeaveRequestOut:
        """Create a pending request and reserve its days on the *year* ledger."""
        employee_id = data.employee_id or actor.id
        if employee_id != actor.id:
            ensure_authority(actor, "create_on_behalf")

        employee = await db.get(Employee, employee_id)
        if employee is None or not employee.is_active:
            raise NotFoundException("Employee", str(employee_id))

        leave_type = await db.get(LeaveType, data.leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", str(data.leave_type_id))
        if not leave_type.is_active:
            raise ValidationException(
                {"leave_type_id": [f"{leave_type.name} is no longer offered."]}
            )

        LeaveRequestService._check_eligibility(employee, leave_type, data.start_date)
        LeaveRequestService._check_days(
            leave_type, data.start_date, data.end_date, data.days_requested
        )

        async with atomic(db):
            await LeaveRequestService._lock_employee(db, employee.id)
            await LeaveRequestService._check_overlap(
                db, employee.id, data.start_date, data.end_date
            )
            await LeaveLedger.ensure_initialized(db, employee.id, year)
            await LeaveLedger.reserve_pending(
                db,
                employee.id,
                leave_type.id,
                year,
                data.days_requested,
                allow_negative=leave_type.allow_negative_balance,
            )

            req = LeaveRequest(
                employee_id=employee.id,
                leave_type_id=leave_type.id,
                balance_year=year,
                start_date=data.start_date,
                end_date=data.end_date,
                days_requested=data.days_requested,
                reason=data.reason,
                status=LeaveStatus.pending,
            )
            db.add(req)
            await db.flush()
            await db.refresh(req)

        logger.info(
            "Leave request %s created: %s %s day(s) of %s for employee %s by %s",
            req.id, req.status.value, req.days_requested, leave_type.code,
            employee.id, actor.id,
        )
        return LeaveRequestService._build_request_response(req, employee, leave_type)

    # ─────────────────────────────────────────────────────────────────
    # Edit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def edit_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        patch: LeaveRequestUpdate,
        actor: Actor,
    ) -> LeaveRequestOut:
        """Patch dates / days / reason of a pending request.

        The day delta is computed from the row locked in this transaction,
        and the reservation is adjusted in the same unit as the row update.
        """
        async with atomic(db):
            req = await LeaveRequestService._lock_request(db, request_id)
            if req.employee_id != actor.id:
                ensure_authority(actor, "edit_others")
            if req.status != LeaveStatus.pending:
                raise InvalidStateTransition("LeaveRequest", req.status, LeaveStatus.pending)

            employee, leave_type = req.employee, req.leave_type
            start_date = patch.start_date or req.start_date
            end_date = patch.end_date or req.end_date
            days = patch.days_requested or req.days_requested

            if start_date.year != req.balance_year:
                raise ValidationException(
                    {"start_date": [
                        f"Request is booked against {req.balance_year}; "
                        "moving it to another leave year needs a new request."
                    ]}
                )
            LeaveRequestService._check_days(leave_type, start_date, end_date, days)
            dates_changed = (start_date, end_date) != (req.start_date, req.end_date)
            if dates_changed:
                LeaveRequestService._check_eligibility(employee, leave_type, start_date)
                await LeaveRequestService._lock_employee(db, req.employee_id)
                await LeaveRequestService._check_overlap(
                    db, req.employee_id, start_date, end_date, exclude_id=req.id
                )

            delta = days - req.days_requested
            if delta:
                await LeaveLedger.adjust_pending(
                    db,
                    req.employee_id,
                    req.leave_type_id,
                    req.balance_year,
                    delta,
                    allow_negative=leave_type.allow_negative_balance,
                )

            req.start_date = start_date
            req.end_date = end_date
            req.days_requested = days
            if "reason" in patch.model_fields_set:
                req.reason = patch.reason
            await db.flush()
            await db.refresh(req)

        logger.info(
            "Leave request %s edited by %s (days delta %s)", req.id, actor.id, delta
        )
        return LeaveRequestService._build_request_response(req, employee, leave_type)

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        decision: LeaveDecision,
        actor: Actor,
        *,
        comments: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Approve (pending → used) or reject (pending released) a request."""
        ensure_authority(actor, "decide")
        target = (
            LeaveStatus.approved if decision == LeaveDecision.approve else LeaveStatus.rejected
        )

        async with atomic(db):
            req = await LeaveRequestService._lock_request(db, request_id)
            if req.employee_id == actor.id:
                raise ForbiddenException("You cannot decide your own leave request.")
            LeaveRequestService._ensure_transition(req, target)

            employee, leave_type = req.employee, req.leave_type
            if target == LeaveStatus.approved:
                await LeaveLedger.commit_approval(
                    db,
                    req.employee_id,
                    req.leave_type_id,
                    req.balance_year,
                    req.days_requested,
                    allow_negative=leave_type.allow_negative_balance,
                )
            else:
                await LeaveLedger.release_pending(
                    db,
                    req.employee_id,
                    req.leave_type_id,
                    req.balance_year,
                    req.days_requested,
                )
                req.rejection_reason = rejection_reason

            req.status = target
            req.reviewed_by = actor.id
            req.reviewed_at = datetime.now(timezone.utc)
            req.manager_comments = comments
            await db.flush()
            await db.refresh(req)

        logger.info("Leave request %s %s by %s", req.id, target.value, actor.id)
        return LeaveRequestService._build_request_response(req, employee, leave_type)

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_approved_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Actor,
        reason: Optional[str],
    ) -> LeaveRequestOut:
        """Cancel an approved request and give its days back."""
        if not reason or not reason.strip():
            raise ValidationException({"reason": ["Cancellation reason is required."]})
        ensure_authority(actor, "cancel")

        async with atomic(db):
            req = await LeaveRequestService._lock_request(db, request_id)
            LeaveRequestService._ensure_transition(req, LeaveStatus.cancelled)

            employee, leave_type = req.employee, req.leave_type
            await LeaveLedger.restore_from_cancellation(
                db,
                req.employee_id,
                req.leave_type_id,
                req.balance_year,
                req.days_requested,
            )

            req.status = LeaveStatus.cancelled
            req.cancelled_by = actor.id
            req.cancelled_at = datetime.now(timezone.utc)
            req.cancellation_reason = reason.strip()
            await db.flush()
            await db.refresh(req)

        logger.info("Leave request %s cancelled by %s", req.id, actor.id)
        return LeaveRequestService._build_request_response(req, employee, leave_type)

    # ─────────────────────────────────────────────────────────────────
    # Listing
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        actor: Actor,
        filters: LeaveRequestFilters,
        params: PaginationParams,
    ) -> PaginatedResponse:
        """Paginated request listing.  Employee-tier actors see only their own."""
        employee_id = filters.employee_id
        if not actor.has_authority(required_tier("read_all")):
            if employee_id is not None and employee_id != actor.id:
                raise ForbiddenException("You can only view your own leave requests.")
            employee_id = actor.id

        query = (
            select(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            )
        )
        query = apply_filters(
            query,
            _FILTER_COLUMNS,
            {
                "employee_id": employee_id,
                "status": filters.status,
                "leave_type_id": filters.leave_type_id,
                # overlap with [from_date, to_date]
                "end_date__from": filters.from_date,
                "start_date__to": filters.to_date,
            },
        )
        query = apply_search(query, filters.search, _SEARCH_COLUMNS)
        query = apply_sorting(query, params.sort, _SORT_COLUMNS, default=DEFAULT_SORT)
        query = query.order_by(LeaveRequest.id)

        return await paginate(
            db,
            query,
            params,
            transform=lambda req: LeaveRequestService._build_request_response(
                req, req.employee, req.leave_type
            ),
        )

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalanceOut]:
        """Balances of *employee_id* for *year*, seeding missing rows first."""
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))

        async with atomic(db):
            await LeaveLedger.ensure_initialized(db, employee_id, year)

        result = await db.execute(
            select(LeaveBalance)
            .join(LeaveType, LeaveBalance.leave_type_id == LeaveType.id)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
            .options(selectinload(LeaveBalance.leave_type))
            .order_by(LeaveType.name)
            .execution_options(populate_existing=True)
        )
        return [LeaveBalanceOut.model_validate(b) for b in result.scalars().all()]
