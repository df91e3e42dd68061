"""Enums and constants for the leave core: matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Directory ───────────────────────────────────────────────────────

class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"
    undisclosed = "undisclosed"


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    team_leader = "team_leader"
    manager = "manager"
    department_manager = "department_manager"
    hr_manager = "hr_manager"
    admin = "admin"
    super_admin = "super_admin"


class AuthorityTier(int, enum.Enum):
    """Ordered authority tiers; comparisons follow the integer value."""

    employee = 1
    team_leader = 2
    manager = 3
    hr = 4
    admin = 5


# Every role maps to exactly one tier; unknown roles never reach this table
# because UserRole is closed.
ROLE_AUTHORITY: dict[UserRole, AuthorityTier] = {
    UserRole.employee: AuthorityTier.employee,
    UserRole.team_leader: AuthorityTier.team_leader,
    UserRole.manager: AuthorityTier.manager,
    UserRole.department_manager: AuthorityTier.manager,
    UserRole.hr_manager: AuthorityTier.hr,
    UserRole.admin: AuthorityTier.admin,
    UserRole.super_admin: AuthorityTier.admin,
}


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class LeaveDecision(str, enum.Enum):
    approve = "approve"
    reject = "reject"


# Lifecycle edges; rejected and cancelled are terminal.
LEAVE_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset({LeaveStatus.approved, LeaveStatus.rejected}),
    LeaveStatus.approved: frozenset({LeaveStatus.cancelled}),
    LeaveStatus.rejected: frozenset(),
    LeaveStatus.cancelled: frozenset(),
}

# Minimum tier per lifecycle event.
TRANSITION_AUTHORITY: dict[str, AuthorityTier] = {
    "create_on_behalf": AuthorityTier.hr,
    "edit_others": AuthorityTier.team_leader,
    "decide": AuthorityTier.team_leader,
    "cancel": AuthorityTier.team_leader,
    "read_all": AuthorityTier.team_leader,
    "configure": AuthorityTier.hr,
}

# ── Misc constants ──────────────────────────────────────────────────

DEFAULT_LEAVE_COLOR = "#4CAF50"
HALF_DAY = "0.5"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
DEFAULT_SORT = "-created_at"
MAX_REQUEST_SPAN_DAYS = 365
