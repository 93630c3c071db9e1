"""
Record Repository

Read-only access to the clinic record store: pet lookups for patient
context and a streaming walk over saved SOAP notes for reindexing.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from soap_assist.models.orm import MedicalRecord, Pet

logger = logging.getLogger(__name__)


class RecordRepository:
    """
    Repository for pets and medical records.

    All methods expect an externally managed ``AsyncSession``.
    Every pet lookup is scoped by tenant: a pet id from another clinic
    behaves exactly like an unknown id.
    """

    async def get_pet(
        self,
        session: AsyncSession,
        tenant_id: str,
        pet_id: str | uuid.UUID,
    ) -> Pet | None:
        """Look up a pet by id within a tenant. Malformed ids return None."""
        if not isinstance(pet_id, uuid.UUID):
            try:
                pet_id = uuid.UUID(str(pet_id))
            except ValueError:
                logger.debug("Ignoring malformed pet id: %r", pet_id)
                return None

        stmt = select(Pet).where(Pet.id == pet_id, Pet.tenant_id == tenant_id)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def iter_records(
        self,
        session: AsyncSession,
        tenant_id: str | None = None,
        batch_size: int = 500,
    ) -> AsyncIterator[MedicalRecord]:
        """
        Stream medical records with their pet loaded, oldest first.

        Args:
            session: Active async database session.
            tenant_id: Restrict to one clinic (all clinics when None).
            batch_size: Rows fetched per round-trip.
        """
        stmt = (
            select(MedicalRecord)
            .options(selectinload(MedicalRecord.pet))
            .order_by(MedicalRecord.created_at)
            .execution_options(yield_per=batch_size)
        )
        if tenant_id is not None:
            stmt = stmt.where(MedicalRecord.tenant_id == tenant_id)

        result = await session.stream(stmt)
        async for record in result.scalars():
            yield record


# Module-level singleton for convenience imports
record_repository = RecordRepository()
