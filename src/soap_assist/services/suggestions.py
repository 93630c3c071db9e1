"""
Suggestion Query Service

Turns partial note text plus patient context into ranked suggestions.

Modes:
    - ``suggest``: fuzzy full-text match on the section, scoped to the
      tenant and (when known) the species, age bucket and clinician.
    - ``complete_prefix``: completion-suggester lookup for ghost text.
    - ``autocomplete``: single best suggestion, never empty.

When the index is unavailable the caller still receives something usable:
one deterministic fallback suggestion built from the section template.
"""

from __future__ import annotations

import logging
from typing import Any

from soap_assist.core.config import settings
from soap_assist.core.exceptions import IndexUnavailableError, MissingTenantError
from soap_assist.models.schemas import (
    PatientContext,
    SoapField,
    Suggestion,
    SuggestionSource,
)
from soap_assist.services import templates
from soap_assist.services.index_client import COMPLETION_FIELD, SuggestionIndexClient
from soap_assist.services.llm import LLMService

logger = logging.getLogger(__name__)

COMPLETION_NAME = "soap_completion"


class SuggestionQueryService:
    """
    Read side of the suggestion subsystem.

    Usage::

        service = SuggestionQueryService(get_index_client())
        hits = await service.suggest(SoapField.ASSESSMENT, "otitis", patient, "clinic-1")
    """

    def __init__(
        self,
        client: SuggestionIndexClient,
        llm: LLMService | None = None,
        min_chars: int | None = None,
    ) -> None:
        self._client = client
        self._llm = llm
        self._min_chars = min_chars or settings.SUGGEST_MIN_CHARS

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def suggest(
        self,
        field: SoapField | str,
        partial_text: str,
        patient: PatientContext | None,
        tenant_id: str,
        limit: int = 5,
        use_prompt: bool = False,
        doctor_id: str | None = None,
    ) -> list[Suggestion]:
        """
        Return ranked suggestions for a SOAP section.

        Args:
            field: SOAP section being edited.
            partial_text: Text typed so far.
            patient: Optional patient context (species / age filters).
            tenant_id: Owning clinic; required.
            limit: Maximum number of suggestions.
            use_prompt: Ask the LLM first; the index is used if it is unavailable.
            doctor_id: Only match notes written by this clinician.

        Returns:
            Suggestions ordered by relevance then recency. Empty when the
            text is too short or nothing matches; a single fallback
            suggestion when the index is unreachable.
        """
        section = SoapField(field)
        if not tenant_id:
            raise MissingTenantError()

        text = partial_text.strip()
        if len(text) < self._min_chars:
            return []

        if use_prompt and self._llm is not None:
            response = await self._llm.suggest(section, text, patient, limit)
            if not response.is_mocked:
                return [
                    Suggestion(text=line, source=SuggestionSource.OPENAI)
                    for line in response.lines
                ]
            logger.info("LLM unavailable, using index suggestions for %s", section.value)

        body = self.build_search_query(
            section, text, patient, tenant_id, limit, doctor_id=doctor_id
        )
        try:
            data = await self._client.search(body)
        except IndexUnavailableError as e:
            logger.warning("Index unavailable, using fallback for %s: %s", section.value, e)
            return [self.fallback(section, patient)]

        hits = data.get("hits", {}).get("hits", [])
        return [Suggestion.from_hit(hit) for hit in hits]

    async def complete_prefix(
        self,
        partial_text: str,
        field: SoapField | str,
        tenant_id: str,
        limit: int = 5,
    ) -> list[Suggestion]:
        """
        Prefix completion against stored note openings (fuzzy-tolerant).

        Returns ``[]`` for short text and when the index is unavailable;
        ghost text simply does not appear in that case.
        """
        section = SoapField(field)
        if not tenant_id:
            raise MissingTenantError()

        text = partial_text.strip()
        if len(text) < self._min_chars:
            return []

        body = self.build_completion_query(section, text, tenant_id, limit)
        try:
            data = await self._client.search(body)
        except IndexUnavailableError as e:
            logger.warning("Index unavailable, no completions: %s", e)
            return []

        entries = data.get("suggest", {}).get(COMPLETION_NAME, [])
        options = entries[0].get("options", []) if entries else []
        return [
            Suggestion(
                text=option.get("text", ""),
                score=option.get("_score", option.get("score")),
                source=SuggestionSource.ELASTICSEARCH,
            )
            for option in options
        ]

    async def autocomplete(
        self,
        field: SoapField | str,
        current_text: str,
        patient: PatientContext | None,
        tenant_id: str,
    ) -> Suggestion:
        """Best single suggestion; the template fallback when nothing matches."""
        suggestions = await self.suggest(field, current_text, patient, tenant_id)
        if suggestions:
            return suggestions[0]
        return self.fallback(field, patient)

    @staticmethod
    def fallback(field: SoapField | str, patient: PatientContext | None) -> Suggestion:
        """Deterministic template suggestion tagged ``source=fallback``."""
        return Suggestion(
            text=templates.template(field, patient),
            source=SuggestionSource.FALLBACK,
            species=patient.species if patient else None,
            breed=patient.breed if patient else None,
            age_bucket=patient.age_bucket if patient else None,
        )

    # ------------------------------------------------------------------
    # Query builders
    # ------------------------------------------------------------------

    @staticmethod
    def build_search_query(
        field: SoapField,
        text: str,
        patient: PatientContext | None,
        tenant_id: str,
        limit: int,
        doctor_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Build the ``_search`` body.

        Section and tenant are mandatory filters; species, age bucket and
        clinician are added only when they are known.
        """
        filters: list[dict[str, Any]] = [{"term": {"tenant_id": tenant_id}}]
        if doctor_id and doctor_id.strip():
            filters.append({"term": {"veterinarian_id": doctor_id.strip()}})
        if patient is not None:
            if patient.species and patient.species.strip():
                filters.append({"term": {"species": patient.species.strip().lower()}})
            bucket = patient.age_bucket
            if bucket is not None:
                filters.append({"term": {"age_bucket": bucket.value}})

        return {
            "size": limit,
            "query": {
                "bool": {
                    "must": [
                        {"term": {"field": field.value}},
                        {
                            "multi_match": {
                                "query": text,
                                "fields": ["text^2", "text.keyword"],
                                "type": "best_fields",
                                "fuzziness": "AUTO",
                            }
                        },
                    ],
                    "filter": filters,
                }
            },
            "sort": [
                {"_score": {"order": "desc"}},
                {"created_date": {"order": "desc"}},
            ],
            "track_scores": True,
        }

    @staticmethod
    def build_completion_query(
        field: SoapField,
        text: str,
        tenant_id: str,
        limit: int,
    ) -> dict[str, Any]:
        """Build the completion-suggester body, scoped by tenant and section."""
        return {
            "_source": False,
            "suggest": {
                COMPLETION_NAME: {
                    "prefix": text,
                    "completion": {
                        "field": COMPLETION_FIELD,
                        "size": limit,
                        "skip_duplicates": True,
                        "fuzzy": {"fuzziness": 2},
                        "contexts": {
                            "tenant_id": [tenant_id],
                            "field": [field.value],
                        },
                    },
                }
            },
        }
