"""Common module: shared utilities for the leave core."""

from hr_leave.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    AuthorityTier,
    GenderType,
    LeaveDecision,
    LeaveStatus,
    UserRole,
)
from hr_leave.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InvalidStateTransition,
    NotFoundException,
    StoreException,
    ValidationException,
    register_exception_handlers,
)
from hr_leave.common.filters import apply_filters, apply_search, apply_sorting
from hr_leave.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Constants / Enums
    "AuthorityTier",
    "GenderType",
    "LeaveDecision",
    "LeaveStatus",
    "UserRole",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InvalidStateTransition",
    "NotFoundException",
    "StoreException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    "apply_sorting",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
