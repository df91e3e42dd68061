"""Tests for leave request listing and balance lookup."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.constants import LeaveDecision, LeaveStatus, UserRole
from hr_leave.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hr_leave.common.pagination import PaginationParams
from hr_leave.leave.schemas import LeaveRequestCreate, LeaveRequestFilters
from hr_leave.leave.service import LeaveRequestService

from tests.conftest import actor_for, insert_employee, insert_leave_type

YEAR = 2026


def _params(page: int = 1, page_size: int = 50, sort: str | None = None) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size, sort=sort)


async def _file(db, employee, leave_type, start, end, days, reason=None):
    return await LeaveRequestService.create_request(
        db,
        actor_for(employee),
        LeaveRequestCreate(
            leave_type_id=leave_type["id"],
            start_date=start,
            end_date=end,
            days_requested=Decimal(days),
            reason=reason,
        ),
        year=YEAR,
    )


@pytest.fixture
async def seeded(db: AsyncSession, test_employee, team_leader, annual_leave, test_department):
    """Three requests from Asha, one from Ravi; one of Asha's approved."""
    sick = await insert_leave_type(db, code="SL", name="Sick Leave", max_days_per_year="12")
    ravi = await insert_employee(
        db, first_name="Ravi", last_name="Kumar", department_id=test_department["id"],
    )

    first = await _file(db, test_employee, annual_leave, date(YEAR, 2, 2), date(YEAR, 2, 4), "3", "Trekking")
    second = await _file(db, test_employee, sick, date(YEAR, 3, 9), date(YEAR, 3, 9), "1", "Dentist")
    third = await _file(db, test_employee, annual_leave, date(YEAR, 5, 4), date(YEAR, 5, 8), "5")
    other = await _file(db, ravi, annual_leave, date(YEAR, 3, 2), date(YEAR, 3, 3), "2", "Moving house")

    await LeaveRequestService.decide_request(
        db, first.id, LeaveDecision.approve, actor_for(team_leader, UserRole.team_leader),
    )
    return {
        "first": first, "second": second, "third": third, "other": other,
        "ravi": ravi, "sick": sick,
    }


class TestListRequests:

    async def test_employee_sees_only_own(self, db: AsyncSession, test_employee, seeded):
        page = await LeaveRequestService.list_requests(
            db, actor_for(test_employee), LeaveRequestFilters(), _params(),
        )

        assert page.meta.total == 3
        assert {r.employee_id for r in page.data} == {test_employee["id"]}

    async def test_employee_cannot_list_others(self, db: AsyncSession, test_employee, seeded):
        with pytest.raises(ForbiddenException):
            await LeaveRequestService.list_requests(
                db,
                actor_for(test_employee),
                LeaveRequestFilters(employee_id=seeded["ravi"]["id"]),
                _params(),
            )

    async def test_leader_sees_everyone(self, db: AsyncSession, team_leader, seeded):
        page = await LeaveRequestService.list_requests(
            db, actor_for(team_leader, UserRole.team_leader), LeaveRequestFilters(), _params(),
        )
        assert page.meta.total == 4

    async def test_default_sort_newest_first(self, db: AsyncSession, team_leader, seeded):
        page = await LeaveRequestService.list_requests(
            db, actor_for(team_leader, UserRole.team_leader), LeaveRequestFilters(), _params(),
        )
        created = [r.created_at for r in page.data]
        assert created == sorted(created, reverse=True)

    async def test_sort_by_start_date(self, db: AsyncSession, team_leader, seeded):
        page = await LeaveRequestService.list_requests(
            db,
            actor_for(team_leader, UserRole.team_leader),
            LeaveRequestFilters(),
            _params(sort="start_date"),
        )
        assert [r.id for r in page.data] == [
            seeded["first"].id, seeded["other"].id, seeded["second"].id, seeded["third"].id,
        ]

    async def test_sort_by_employee_name_desc(self, db: AsyncSession, team_leader, seeded):
        page = await LeaveRequestService.list_requests(
            db,
            actor_for(team_leader, UserRole.team_leader),
            LeaveRequestFilters(),
            _params(sort="-employee_name"),
        )
        assert page.data[0].employee.display_name == "Ravi Kumar"

    async def test_unknown_sort_field_rejected(self, db: AsyncSession, team_leader, seeded):
        with pytest.raises(ValidationException) as exc_info:
            await LeaveRequestService.list_requests(
                db,
                actor_for(team_leader, UserRole.team_leader),
                LeaveRequestFilters(),
                _params(sort="reviewed_by; DROP TABLE leave_requests"),
            )
        assert "sort" in exc_info.value.errors

    async def test_filter_by_status_and_type(self, db: AsyncSession, team_leader, seeded):
        leader = actor_for(team_leader, UserRole.team_leader)

        approved = await LeaveRequestService.list_requests(
            db, leader, LeaveRequestFilters(status=LeaveStatus.approved), _params(),
        )
        assert [r.id for r in approved.data] == [seeded["first"].id]

        sick = await LeaveRequestService.list_requests(
            db, leader, LeaveRequestFilters(leave_type_id=seeded["sick"]["id"]), _params(),
        )
        assert [r.id for r in sick.data] == [seeded["second"].id]

    async def test_filter_by_date_window(self, db: AsyncSession, team_leader, seeded):
        page = await LeaveRequestService.list_requests(
            db,
            actor_for(team_leader, UserRole.team_leader),
            LeaveRequestFilters(from_date=date(YEAR, 3, 3), to_date=date(YEAR, 3, 31)),
            _params(sort="start_date"),
        )
        assert [r.id for r in page.data] == [seeded["other"].id, seeded["second"].id]

    @pytest.mark.parametrize(
        "term,expected",
        [("dentist", "second"), ("kumar", "other"), ("sick", "second")],
    )
    async def test_search(self, db: AsyncSession, team_leader, seeded, term, expected):
        page = await LeaveRequestService.list_requests(
            db,
            actor_for(team_leader, UserRole.team_leader),
            LeaveRequestFilters(search=term),
            _params(),
        )
        assert [r.id for r in page.data] == [seeded[expected].id]

    async def test_pagination_meta(self, db: AsyncSession, team_leader, seeded):
        page = await LeaveRequestService.list_requests(
            db,
            actor_for(team_leader, UserRole.team_leader),
            LeaveRequestFilters(),
            _params(page=2, page_size=3, sort="start_date"),
        )

        assert [r.id for r in page.data] == [seeded["third"].id]
        assert page.meta.total == 4
        assert page.meta.total_pages == 2
        assert page.meta.has_prev is True
        assert page.meta.has_next is False

    async def test_responses_carry_briefs(self, db: AsyncSession, team_leader, seeded):
        page = await LeaveRequestService.list_requests(
            db,
            actor_for(team_leader, UserRole.team_leader),
            LeaveRequestFilters(leave_type_id=seeded["sick"]["id"]),
            _params(),
        )
        item = page.data[0]
        assert item.leave_type.code == "SL"
        assert item.employee.employee_code.startswith("EMP-")
        assert item.balance_year == YEAR


class TestGetBalances:

    async def test_seeds_on_first_read(self, db: AsyncSession, test_employee, annual_leave):
        await insert_leave_type(db, code="SL", name="Sick Leave", max_days_per_year="12")

        balances = await LeaveRequestService.get_balances(db, test_employee["id"], YEAR)

        assert [b.leave_type.code for b in balances] == ["AL", "SL"]
        assert balances[0].available_balance == Decimal("20")

    async def test_available_excludes_pending(
        self, db: AsyncSession, test_employee, annual_leave, seeded,
    ):
        balances = await LeaveRequestService.get_balances(db, test_employee["id"], YEAR)
        annual = next(b for b in balances if b.leave_type_id == annual_leave["id"])

        # 3 approved, 5 pending
        assert annual.used_balance == Decimal("3")
        assert annual.pending_balance == Decimal("5")
        assert annual.current_balance == Decimal("17")
        assert annual.available_balance == Decimal("12")

    async def test_unknown_employee(self, db: AsyncSession, annual_leave):
        with pytest.raises(NotFoundException) as exc_info:
            await LeaveRequestService.get_balances(db, uuid.uuid4(), YEAR)
        assert exc_info.value.entity_type == "Employee"
