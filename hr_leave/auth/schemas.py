"""Auth Pydantic schemas: the authenticated actor carried by every call."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict

from hr_leave.common.constants import ROLE_AUTHORITY, AuthorityTier, UserRole


class Actor(BaseModel):
    """Authenticated caller: an employee id plus its role."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    role: UserRole = UserRole.employee

    @property
    def tier(self) -> AuthorityTier:
        return ROLE_AUTHORITY[self.role]

    def has_authority(self, required: AuthorityTier) -> bool:
        return self.tier >= required
