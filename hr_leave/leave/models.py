"""Leave ORM models: LeaveType, LeaveBalance, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_leave.common.constants import DEFAULT_LEAVE_COLOR, GenderType, LeaveStatus
from hr_leave.database import Base

if TYPE_CHECKING:
    from hr_leave.directory.models import Employee

ZERO = Decimal("0")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveType(Base):
    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(10), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    color: Mapped[str] = mapped_column(
        sa.String(7), default=DEFAULT_LEAVE_COLOR, server_default=DEFAULT_LEAVE_COLOR
    )
    is_paid: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true()
    )
    max_days_per_year: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=ZERO, server_default=sa.text("0")
    )
    allow_half_day: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true()
    )
    allow_carryover: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.false()
    )
    max_carryover_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=ZERO, server_default=sa.text("0")
    )
    requires_document_after_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    # NULL means the type applies to every gender
    applicable_gender: Mapped[Optional[GenderType]] = mapped_column(
        sa.Enum(GenderType, name="gender_type")
    )
    min_service_months: Mapped[int] = mapped_column(
        sa.Integer, default=0, server_default=sa.text("0")
    )
    allow_negative_balance: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.false()
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true()
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    # Relationships
    balances: Mapped[list[LeaveBalance]] = relationship(back_populates="leave_type")
    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")

    def __repr__(self) -> str:
        return f"<LeaveType {self.code} active={self.is_active}>"


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_type_id", "year", name="uq_leave_balance"
        ),
        sa.CheckConstraint(
            "current_balance + used_balance"
            " = accrued_balance + carry_forward_balance",
            name="ck_leave_balance_ledger",
        ),
        sa.CheckConstraint("pending_balance >= 0", name="ck_leave_balance_pending"),
        sa.CheckConstraint("used_balance >= 0", name="ck_leave_balance_used"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    accrued_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=ZERO, server_default=sa.text("0")
    )
    current_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=ZERO, server_default=sa.text("0")
    )
    used_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=ZERO, server_default=sa.text("0")
    )
    pending_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=ZERO, server_default=sa.text("0")
    )
    carry_forward_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=ZERO, server_default=sa.text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(
        back_populates="leave_balances"
    )
    leave_type: Mapped[LeaveType] = relationship(back_populates="balances")

    @property
    def available_balance(self) -> Decimal:
        """Days that can still be requested: current minus pending reservations."""
        return self.current_balance - self.pending_balance

    @property
    def is_consistent(self) -> bool:
        return (
            self.current_balance + self.used_balance
            == self.accrued_balance + self.carry_forward_balance
            and self.pending_balance >= 0
            and self.used_balance >= 0
        )

    def __repr__(self) -> str:
        return (
            f"<LeaveBalance {self.employee_id}/{self.leave_type_id}/{self.year} "
            f"cur={self.current_balance} used={self.used_balance} "
            f"pend={self.pending_balance}>"
        )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("days_requested > 0", name="ck_leave_request_days"),
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_request_dates"),
        sa.Index("idx_leave_req_emp_dates", "employee_id", "start_date", "end_date"),
        sa.Index("idx_leave_req_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    # Ledger year the reservation was booked against
    balance_year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    days_requested: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        default=LeaveStatus.pending,
        server_default=LeaveStatus.pending.value,
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    manager_comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    cancelled_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(
        back_populates="leave_requests", foreign_keys=[employee_id]
    )
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")

    def __repr__(self) -> str:
        return f"<LeaveRequest {self.id} {self.status.value} {self.days_requested}d>"
