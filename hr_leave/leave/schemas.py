"""Leave Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Update / *Request  → request bodies (write)
  - *Out                          → response bodies (read)
  - *Brief                        → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hr_leave.common.constants import DEFAULT_LEAVE_COLOR, GenderType, LeaveStatus

_HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal requester identity embedded in leave responses."""

    id: uuid.UUID
    employee_code: str
    display_name: str
    team_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    profile_photo_url: Optional[str] = None


class LeaveTypeBrief(BaseModel):
    """Minimal leave type info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    color: str = DEFAULT_LEAVE_COLOR
    is_paid: bool = True


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    """Catalog entry payload; also the full-replace body for updates."""

    code: str = Field(..., min_length=1, max_length=10)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: str = Field(DEFAULT_LEAVE_COLOR, pattern=_HEX_COLOR)
    is_paid: bool = True
    max_days_per_year: Decimal = Field(Decimal("0"), ge=0, max_digits=5, decimal_places=1)
    allow_half_day: bool = True
    allow_carryover: bool = False
    max_carryover_days: Decimal = Field(Decimal("0"), ge=0, max_digits=5, decimal_places=1)
    requires_document_after_days: Optional[int] = Field(None, ge=0)
    applicable_gender: Optional[GenderType] = Field(
        None, description="Restrict the type to one gender; null = everyone"
    )
    min_service_months: int = Field(0, ge=0)
    allow_negative_balance: bool = Field(
        False, description="Allow approvals to push current_balance below zero"
    )

    @field_validator("code")
    @classmethod
    def normalise_code(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def validate_carryover(self) -> "LeaveTypeCreate":
        if not self.allow_carryover and self.max_carryover_days > 0:
            raise ValueError("max_carryover_days requires allow_carryover.")
        return self


class LeaveTypeUpdate(LeaveTypeCreate):
    """Full replace of every mutable catalog field."""

    is_active: bool = True


class LeaveTypeOut(BaseModel):
    """Full leave type representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    color: str
    is_paid: bool
    max_days_per_year: Decimal
    allow_half_day: bool
    allow_carryover: bool
    max_carryover_days: Decimal
    requires_document_after_days: Optional[int] = None
    applicable_gender: Optional[GenderType] = None
    min_service_months: int
    allow_negative_balance: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance for a single leave type with computed available field."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    accrued_balance: Decimal
    current_balance: Decimal
    used_balance: Decimal
    pending_balance: Decimal
    carry_forward_balance: Decimal
    available_balance: Decimal

    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Create / Edit
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for creating a leave request."""

    employee_id: Optional[uuid.UUID] = Field(
        None, description="Defaults to the caller; HR may file on behalf of others"
    )
    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    days_requested: Decimal = Field(..., gt=0, max_digits=5, decimal_places=1)
    reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        return self


class LeaveRequestUpdate(BaseModel):
    """Patch for a pending request; omitted fields keep their value."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    days_requested: Optional[Decimal] = Field(None, gt=0, max_digits=5, decimal_places=1)
    reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestUpdate":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        return self


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    balance_year: int
    start_date: date
    end_date: date
    days_requested: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    manager_comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    cancelled_by: Optional[uuid.UUID] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # Enriched by service
    employee: Optional[EmployeeBrief] = None
    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Approve / Reject / Cancel
# ═════════════════════════════════════════════════════════════════════


class LeaveApproveRequest(BaseModel):
    """Payload for approving a leave request."""

    comments: Optional[str] = Field(None, max_length=500)


class LeaveRejectRequest(BaseModel):
    """Payload for rejecting a leave request."""

    rejection_reason: Optional[str] = Field(None, max_length=500)
    comments: Optional[str] = Field(None, max_length=500)


class LeaveCancelRequest(BaseModel):
    """Payload for cancelling an approved leave request."""

    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Cancellation reason is required.")
        return v.strip()


# ═════════════════════════════════════════════════════════════════════
# Leave Request Filters
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestFilters(BaseModel):
    """Query filters for listing leave requests."""

    employee_id: Optional[uuid.UUID] = None
    status: Optional[LeaveStatus] = None
    leave_type_id: Optional[uuid.UUID] = None
    from_date: Optional[date] = Field(None, description="Requests ending on/after this date")
    to_date: Optional[date] = Field(None, description="Requests starting on/before this date")
    search: Optional[str] = Field(
        None, description="Matches requester name/code, leave type name, reason"
    )


# ═════════════════════════════════════════════════════════════════════
# Team Calendar
# ═════════════════════════════════════════════════════════════════════


class LeaveCalendarEntry(BaseModel):
    """Single entry in the team leave calendar."""

    id: uuid.UUID
    title: str
    start_date: date
    end_date: date
    days_requested: Decimal
    status: LeaveStatus
    color: str
    employee: EmployeeBrief
    leave_type: LeaveTypeBrief
