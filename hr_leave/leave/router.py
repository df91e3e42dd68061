"""Leave router: leave types, balances, request lifecycle, team calendar.

All endpoints require a bearer token.  Catalog writes and request decisions
enforce authority tiers; ownership rules are checked in the services.
"""


import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.auth.dependencies import get_current_actor, require_authority
from hr_leave.auth.policy import ensure_authority
from hr_leave.auth.schemas import Actor
from hr_leave.common.constants import LeaveDecision, LeaveStatus
from hr_leave.common.pagination import PaginatedResponse, PaginationParams
from hr_leave.common.rate_limit import limiter
from hr_leave.database import get_db
from hr_leave.leave.calendar import TeamCalendarService
from hr_leave.leave.catalog import LeaveCatalogService
from hr_leave.leave.schemas import (
    LeaveApproveRequest,
    LeaveBalanceOut,
    LeaveCalendarEntry,
    LeaveCancelRequest,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestFilters,
    LeaveRequestOut,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)
from hr_leave.leave.service import LeaveRequestService

router = APIRouter(prefix="", tags=["leave"])


# ── GET /types ──────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    active_only: bool = Query(True),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """List leave types, active ones only by default."""
    return await LeaveCatalogService.list_leave_types(db, active_only=active_only)


# ── POST /types ─────────────────────────────────────────────────────

@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    actor: Actor = Depends(require_authority("configure")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveCatalogService.create_leave_type(db, body)


# ── PUT /types/{id} ─────────────────────────────────────────────────

@router.put("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    actor: Actor = Depends(require_authority("configure")),
    db: AsyncSession = Depends(get_db),
):
    """Replace every mutable field of a leave type."""
    return await LeaveCatalogService.update_leave_type(db, leave_type_id, body)


# ── DELETE /types/{id} ──────────────────────────────────────────────

@router.delete("/types/{leave_type_id}", status_code=204)
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    actor: Actor = Depends(require_authority("configure")),
    db: AsyncSession = Depends(get_db),
):
    """Soft-retire a leave type; historical requests keep referencing it."""
    await LeaveCatalogService.deactivate_leave_type(db, leave_type_id)
    return Response(status_code=204)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def get_balances(
    employee_id: Optional[uuid.UUID] = Query(None, description="Defaults to the caller"),
    year: Optional[int] = Query(None, description="Leave year; defaults to current year"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Get leave balances for a given year, seeding missing rows."""
    target_id = employee_id or actor.id
    if target_id != actor.id:
        ensure_authority(actor, "read_all")
    target_year = year or datetime.now(timezone.utc).year
    return await LeaveRequestService.get_balances(db, target_id, target_year)


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
@limiter.limit("30/minute")
async def create_request(
    request: Request,
    body: LeaveRequestCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Booked against the ledger year of start_date."""
    return await LeaveRequestService.create_request(
        db, actor, body, year=body.start_date.year,
    )


# ── PATCH /requests/{id} ────────────────────────────────────────────

@router.patch("/requests/{request_id}", response_model=LeaveRequestOut)
async def edit_request(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Edit a pending request's dates, days or reason."""
    return await LeaveRequestService.edit_request(db, request_id, body, actor)


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_request(
    request_id: uuid.UUID,
    body: LeaveApproveRequest,
    actor: Actor = Depends(require_authority("decide")),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending leave request. Moves the days from pending to used."""
    return await LeaveRequestService.decide_request(
        db, request_id, LeaveDecision.approve, actor, comments=body.comments,
    )


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_request(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    actor: Actor = Depends(require_authority("decide")),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending leave request."""
    return await LeaveRequestService.decide_request(
        db,
        request_id,
        LeaveDecision.reject,
        actor,
        comments=body.comments,
        rejection_reason=body.rejection_reason,
    )


# ── POST /requests/{id}/cancel ──────────────────────────────────────

@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_request(
    request_id: uuid.UUID,
    body: LeaveCancelRequest,
    actor: Actor = Depends(require_authority("cancel")),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an approved leave request and restore the balance."""
    return await LeaveRequestService.cancel_approved_request(
        db, request_id, actor, body.reason,
    )


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def list_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    params: PaginationParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """List leave requests. Employees only see their own."""
    filters = LeaveRequestFilters(
        employee_id=employee_id,
        status=status,
        leave_type_id=leave_type_id,
        from_date=from_date,
        to_date=to_date,
        search=search,
    )
    return await LeaveRequestService.list_requests(db, actor, filters, params)


# ── GET /team-calendar ──────────────────────────────────────────────

@router.get("/team-calendar", response_model=list[LeaveCalendarEntry])
async def team_calendar(
    start_date: date = Query(...),
    end_date: date = Query(...),
    team_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Pending and approved leave of a team, defaulting to the caller's own."""
    return await TeamCalendarService.team_calendar(
        db,
        actor.id,
        start_date,
        end_date,
        team_id=team_id,
        department_id=department_id,
    )
