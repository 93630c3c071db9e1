"""
Patient Context Resolver

Completes the patient context of a request from the record store. Stored
pet attributes take precedence over the ones sent by the caller; a
record-store outage degrades to the supplied context instead of failing
the request.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from soap_assist.models.orm import Pet
from soap_assist.models.schemas import PatientContext
from soap_assist.repositories.records import RecordRepository, record_repository

logger = logging.getLogger(__name__)


def context_from_pet(pet: Pet) -> PatientContext:
    """Map a stored pet onto a ``PatientContext``."""
    return PatientContext(
        id=str(pet.id),
        species=pet.species,
        breed=pet.breed,
        age=pet.age,
        sex=pet.sex,
        name=pet.name,
    )


class PatientResolver:
    """Looks up pets by id and merges them with request-supplied context."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: RecordRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._repository = repository or record_repository

    async def resolve(
        self,
        tenant_id: str,
        patient_id: str | None,
        supplied: PatientContext | None = None,
    ) -> PatientContext:
        """
        Build the effective patient context for a request.

        Args:
            tenant_id: Clinic the request belongs to.
            patient_id: Pet id to look up; skipped when None.
            supplied: Context sent by the caller.

        Returns:
            The supplied context overlaid with every non-null stored
            attribute, or just the supplied context when no pet is found.
        """
        supplied = supplied or PatientContext()
        patient_id = patient_id or supplied.id
        if not patient_id:
            return supplied

        try:
            async with self._session_factory() as session:
                pet = await self._repository.get_pet(session, tenant_id, patient_id)
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Patient lookup failed for %s: %s", patient_id, e)
            return supplied

        if pet is None:
            logger.debug("No pet %s for tenant %s", patient_id, tenant_id)
            return supplied

        resolved = supplied.merged_with(context_from_pet(pet))
        if pet.age is not None:
            # A stored age beats an age group sent by the caller
            resolved = resolved.model_copy(update={"age_group": None})
        return resolved
