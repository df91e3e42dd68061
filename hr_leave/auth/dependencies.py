"""Auth dependencies: JWT validation, authority enforcement."""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt

from hr_leave.auth.policy import ensure_authority
from hr_leave.auth.schemas import Actor
from hr_leave.common.constants import UserRole
from hr_leave.config import settings


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_actor(request: Request) -> Actor:
    """Validate the access JWT and return the calling actor.

    Tokens are issued elsewhere; this core only trusts the ``sub`` and
    ``role`` claims of a correctly signed, unexpired access token.
    """
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        actor_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    try:
        role = UserRole(payload.get("role", UserRole.employee.value))
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown role in token.")

    return Actor(id=actor_id, role=role)


# ── Authority-based dependency ──────────────────────────────────────

def require_authority(action: str) -> Callable:
    """Return a FastAPI dependency that enforces the tier for *action*.

    Respects the tier ordering: e.g. admin can do anything hr can.
    """

    async def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        ensure_authority(actor, action)
        return actor

    return _check
