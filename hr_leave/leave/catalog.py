"""Leave type catalog: policy configuration consumed by the ledger."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.exceptions import ConflictError, NotFoundException
from hr_leave.database import atomic
from hr_leave.leave.models import LeaveType
from hr_leave.leave.schemas import LeaveTypeCreate, LeaveTypeOut, LeaveTypeUpdate

logger = logging.getLogger(__name__)


class LeaveCatalogService:
    """Static service class for leave type configuration."""

    @staticmethod
    async def _get(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        lt = await db.get(LeaveType, leave_type_id)
        if lt is None:
            raise NotFoundException("LeaveType", leave_type_id)
        return lt

    @staticmethod
    async def _ensure_code_free(
        db: AsyncSession,
        code: str,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        query = select(LeaveType.id).where(LeaveType.code == code)
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError("code", code)

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def list_leave_types(
        db: AsyncSession,
        active_only: bool = True,
    ) -> list[LeaveTypeOut]:
        query = select(LeaveType).order_by(LeaveType.name)
        if active_only:
            query = query.where(LeaveType.is_active.is_(True))
        result = await db.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    # ── Write ───────────────────────────────────────────────────────

    @staticmethod
    async def create_leave_type(db: AsyncSession, data: LeaveTypeCreate) -> LeaveTypeOut:
        async with atomic(db):
            await LeaveCatalogService._ensure_code_free(db, data.code)
            lt = LeaveType(**data.model_dump())
            db.add(lt)
            await db.flush()
            await db.refresh(lt)

        logger.info("Leave type %s created (%s)", lt.code, lt.id)
        return LeaveTypeOut.model_validate(lt)

    @staticmethod
    async def update_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
    ) -> LeaveTypeOut:
        """Full replace: every mutable field takes the value in *data*."""
        async with atomic(db):
            lt = await LeaveCatalogService._get(db, leave_type_id)
            if data.code != lt.code:
                await LeaveCatalogService._ensure_code_free(
                    db, data.code, exclude_id=lt.id
                )
            for key, value in data.model_dump().items():
                setattr(lt, key, value)
            await db.flush()
            await db.refresh(lt)

        logger.info("Leave type %s updated", lt.code)
        return LeaveTypeOut.model_validate(lt)

    @staticmethod
    async def deactivate_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> None:
        """Retire a type from future balance seeding.  Idempotent."""
        async with atomic(db):
            lt = await LeaveCatalogService._get(db, leave_type_id)
            if not lt.is_active:
                return
            lt.is_active = False
            await db.flush()

        logger.info("Leave type %s deactivated", lt.code)
