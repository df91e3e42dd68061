"""Authority checks shared by the HTTP layer and the leave services."""

from __future__ import annotations

from hr_leave.auth.schemas import Actor
from hr_leave.common.constants import TRANSITION_AUTHORITY, AuthorityTier
from hr_leave.common.exceptions import ForbiddenException


def required_tier(action: str) -> AuthorityTier:
    """Look up the minimum tier for *action* (see ``TRANSITION_AUTHORITY``)."""
    return TRANSITION_AUTHORITY[action]


def ensure_authority(actor: Actor, action: str) -> None:
    """Raise ``ForbiddenException`` unless *actor* meets the tier for *action*."""
    required = required_tier(action)
    if not actor.has_authority(required):
        raise ForbiddenException(
            detail=(
                f"Role '{actor.role.value}' may not {action.replace('_', ' ')}. "
                f"Required authority: {required.name} or above."
            ),
        )
