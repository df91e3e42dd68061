"""Team leave calendar: read-only projection of pending and approved leave."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.constants import LeaveStatus
from hr_leave.common.exceptions import ValidationException
from hr_leave.directory.models import Employee
from hr_leave.leave.models import LeaveRequest, LeaveType
from hr_leave.leave.schemas import LeaveCalendarEntry
from hr_leave.leave.service import LeaveRequestService


class TeamCalendarService:

    @staticmethod
    async def team_calendar(
        db: AsyncSession,
        caller_id: uuid.UUID,
        start_date: date,
        end_date: date,
        *,
        team_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveCalendarEntry]:
        """Leave overlapping [start_date, end_date] for one team or department.

        Without an explicit scope the caller's own team is used, then the
        caller's department.  A caller with neither, or with no directory
        record at all, gets an empty list.
        """
        if start_date > end_date:
            raise ValidationException(
                {"end_date": ["end_date must be on or after start_date."]}
            )

        if team_id is None and department_id is None:
            caller = await db.get(Employee, caller_id)
            if caller is None:
                return []
            team_id = caller.team_id
            if team_id is None:
                department_id = caller.department_id
            if team_id is None and department_id is None:
                return []

        scope = (
            Employee.team_id == team_id
            if team_id is not None
            else Employee.department_id == department_id
        )
        result = await db.execute(
            select(LeaveRequest, Employee, LeaveType)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .where(
                scope,
                LeaveRequest.status.in_([LeaveStatus.pending, LeaveStatus.approved]),
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
            .order_by(LeaveRequest.start_date, Employee.first_name)
        )

        entries: list[LeaveCalendarEntry] = []
        for req, emp, lt in result.all():
            entries.append(
                LeaveCalendarEntry(
                    id=req.id,
                    title=f"{emp.shown_name} ({lt.code})",
                    start_date=req.start_date,
                    end_date=req.end_date,
                    days_requested=req.days_requested,
                    status=req.status,
                    color=lt.color,
                    employee=LeaveRequestService.build_employee_brief(emp),
                    leave_type=LeaveRequestService.build_leave_type_brief(lt),
                )
            )
        return entries
