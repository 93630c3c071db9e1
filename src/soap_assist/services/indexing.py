"""
Indexing Service

Writes finalized SOAP sections into the suggestion index so later visits can
reuse the phrasing. Indexing is best-effort: it runs after the record has
been saved and its failures are logged, never raised to the save path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import NamedTuple

from soap_assist.core.exceptions import MissingTenantError, SuggestionIndexError
from soap_assist.models.schemas import (
    PatientContext,
    SoapField,
    SoapNote,
    SuggestionDocument,
)
from soap_assist.services.index_client import SuggestionIndexClient

logger = logging.getLogger(__name__)


class IndexEntry(NamedTuple):
    """
    One section to index in a bulk write.

    ``created_at`` defaults to now; reindexing passes the visit date so the
    recency tie-break keeps the visit order.
    """

    field: SoapField | str
    text: str | None
    patient: PatientContext | None
    tenant_id: str
    veterinarian_id: str | None = None
    created_at: datetime | None = None


class IndexingService:
    """
    Insert-only writer for ``SuggestionDocument``.

    Every call produces new documents; identical text indexed twice yields
    two documents (no dedup, no update in place).
    """

    def __init__(self, client: SuggestionIndexClient) -> None:
        self._client = client

    async def index_field(
        self,
        field: SoapField | str,
        text: str | None,
        patient: PatientContext | None,
        tenant_id: str,
        veterinarian_id: str | None = None,
    ) -> bool:
        """
        Index one SOAP section.

        Args:
            field: SOAP section name.
            text: Section text; blank text is dropped silently.
            patient: Context used for species / breed / age-bucket tags.
            tenant_id: Owning clinic.
            veterinarian_id: Clinician who wrote the note, if known.

        Returns:
            True if a document was written, False if dropped or failed.

        Raises:
            ValueError: If ``field`` is not a SOAP section.
            MissingTenantError: If ``tenant_id`` is empty.
        """
        if not tenant_id:
            raise MissingTenantError()

        document = SuggestionDocument.build(
            field, text, patient, tenant_id, veterinarian_id=veterinarian_id
        )
        if document is None:
            return False

        try:
            await self._client.index_document(document.to_source())
        except SuggestionIndexError as e:
            logger.error(
                "Failed to index %s for pet %s (tenant=%s): %s",
                document.field.value,
                document.pet_id or "unknown",
                tenant_id,
                e,
            )
            return False

        logger.info(
            "Indexed %s for pet %s (tenant=%s)",
            document.field.value,
            document.pet_id or "unknown",
            tenant_id,
        )
        return True

    async def bulk_index(self, entries: Iterable[IndexEntry]) -> int:
        """
        Index many sections in one batched write.

        Blank entries are skipped. Item-level failures inside the batch are
        only logged by the client.

        Returns:
            Number of documents submitted (0 if the request failed).
        """
        documents: list[SuggestionDocument] = []
        for entry in entries:
            if not entry.tenant_id:
                raise MissingTenantError()
            document = SuggestionDocument.build(
                entry.field,
                entry.text,
                entry.patient,
                entry.tenant_id,
                now=entry.created_at,
                veterinarian_id=entry.veterinarian_id,
            )
            if document is not None:
                documents.append(document)

        if not documents:
            return 0

        try:
            result = await self._client.bulk([d.to_source() for d in documents])
        except SuggestionIndexError as e:
            logger.error("Bulk indexing of %d documents failed: %s", len(documents), e)
            return 0

        logger.info("Bulk indexed %d SOAP fields", result.submitted)
        return result.submitted

    async def index_record(
        self,
        note: SoapNote,
        patient: PatientContext | None,
        tenant_id: str,
        veterinarian_id: str | None = None,
    ) -> int:
        """
        Index every non-empty section of a saved SOAP note.

        Returns:
            Number of sections written.
        """
        written = 0
        for field, text in note.sections():
            if await self.index_field(field, text, patient, tenant_id, veterinarian_id):
                written += 1
        return written
