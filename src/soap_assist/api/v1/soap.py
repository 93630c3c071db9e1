"""
SOAP Suggestion API Router

HTTP endpoints for SOAP-note suggestions. Every endpoint requires the
tenant header; results never cross tenants.

Endpoints:
    POST /suggest       Ranked suggestions for a SOAP section.
    POST /paraphrase    Clinically phrased rewrites of a note.
    POST /autocomplete  Single best suggestion (never empty).
    POST /complete      Prefix completions for ghost text.
    POST /index         Queue a saved note for indexing (returns 202).
    GET  /stats         Suggestion index statistics.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from soap_assist.api.deps import (
    get_indexing_service,
    get_llm_service,
    get_patient_resolver,
    get_query_service,
    get_search_index,
    get_tenant_id,
)
from soap_assist.core.config import settings
from soap_assist.core.exceptions import IndexUnavailableError
from soap_assist.models.schemas import PatientContext, SoapNote, SuggestionSource
from soap_assist.schemas.soap import (
    AutocompleteRequest,
    AutocompleteResponse,
    CompleteRequest,
    CompleteResponse,
    IndexAcceptedResponse,
    IndexRequest,
    IndexStats,
    ParaphraseRequest,
    ParaphraseResponse,
    ShardStats,
    StatsResponse,
    SuggestionOut,
    SuggestRequest,
    SuggestResponse,
)
from soap_assist.services import templates
from soap_assist.services.index_client import SuggestionIndexClient
from soap_assist.services.indexing import IndexingService
from soap_assist.services.llm import LLMService
from soap_assist.services.patients import PatientResolver
from soap_assist.services.suggestions import SuggestionQueryService

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Background task
# ---------------------------------------------------------------------------


async def _run_index(
    indexing: IndexingService,
    resolver: PatientResolver,
    tenant_id: str,
    note: SoapNote,
    patient_id: str | None,
    patient: PatientContext | None,
    doctor_id: str | None = None,
) -> None:
    """
    Background task that indexes a saved note.

    Runs after the response is sent; failures are logged only, the note
    itself is already persisted by the caller.
    """
    try:
        context = await resolver.resolve(tenant_id, patient_id, patient)
        written = await indexing.index_record(note, context, tenant_id, doctor_id)
        logger.info(
            "Indexed %d SOAP fields for pet %s (tenant=%s)",
            written,
            context.id or "unknown",
            tenant_id,
        )
    except Exception:
        logger.exception("Background indexing failed (tenant=%s)", tenant_id)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/suggest",
    response_model=SuggestResponse,
    summary="Ranked suggestions for a SOAP section",
)
async def suggest(
    request: SuggestRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: SuggestionQueryService = Depends(get_query_service),
    resolver: PatientResolver = Depends(get_patient_resolver),
) -> SuggestResponse:
    """
    Suggest continuations for the text typed so far.

    Index matches are restricted to the tenant and, when known, to the
    patient's species and age bucket and to the requesting clinician. Text shorter than three characters
    returns an empty list. If the index is unreachable a single template
    suggestion with ``source=fallback`` is returned instead of an error.
    """
    patient = await resolver.resolve(
        tenant_id, request.patient_id, request.patient_context(request.patient_id)
    )
    suggestions = await service.suggest(
        request.field,
        request.input_text,
        patient,
        tenant_id,
        limit=request.limit,
        use_prompt=request.use_prompt,
        doctor_id=request.doctor_id,
    )
    return SuggestResponse(
        suggestions=[SuggestionOut.from_suggestion(s) for s in suggestions]
    )


@router.post(
    "/paraphrase",
    response_model=ParaphraseResponse,
    summary="Clinically phrased rewrites of a note",
    responses={400: {"description": "Input has fewer than 3 words"}},
)
async def paraphrase(
    request: ParaphraseRequest,
    tenant_id: str = Depends(get_tenant_id),
    llm: LLMService = Depends(get_llm_service),
) -> ParaphraseResponse:
    """
    Rewrite a note in clinical language.

    Uses the LLM when ``use_prompt`` is set and a key is configured; the
    rule-based templates are used otherwise, or when the LLM call fails.
    """
    if len(request.input_text.split()) < settings.PARAPHRASE_MIN_WORDS:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Input text must have at least {settings.PARAPHRASE_MIN_WORDS} "
                "words for paraphrasing"
            ),
        )

    patient = request.patient_context()
    if request.use_prompt:
        response = await llm.paraphrase(request.field, request.input_text, patient)
        if not response.is_mocked:
            return ParaphraseResponse(
                paraphrases=response.lines, source=SuggestionSource.OPENAI
            )
        logger.info("Paraphrase LLM unavailable (tenant=%s), using templates", tenant_id)

    return ParaphraseResponse(
        paraphrases=templates.fallback_paraphrases(
            request.field, request.input_text, patient
        ),
        source=SuggestionSource.FALLBACK,
    )


@router.post(
    "/autocomplete",
    response_model=AutocompleteResponse,
    summary="Single best suggestion",
)
async def autocomplete(
    request: AutocompleteRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: SuggestionQueryService = Depends(get_query_service),
    resolver: PatientResolver = Depends(get_patient_resolver),
) -> AutocompleteResponse:
    """
    Return the top match for the current text, or a template suggestion
    built from the patient context when nothing matches.
    """
    supplied = request.patient
    patient = await resolver.resolve(
        tenant_id, supplied.id if supplied else None, supplied
    )
    suggestion = await service.autocomplete(
        request.field, request.current_text, patient, tenant_id
    )
    return AutocompleteResponse(
        suggestion=suggestion.text,
        source=suggestion.source,
        patient=patient,
    )


@router.post(
    "/complete",
    response_model=CompleteResponse,
    summary="Prefix completions for ghost text",
)
async def complete(
    request: CompleteRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: SuggestionQueryService = Depends(get_query_service),
) -> CompleteResponse:
    """Complete the typed prefix from stored note openings (typo-tolerant)."""
    completions = await service.complete_prefix(
        request.input_text, request.field, tenant_id, limit=request.limit
    )
    return CompleteResponse(
        completions=[SuggestionOut.from_suggestion(c) for c in completions]
    )


@router.post(
    "/index",
    response_model=IndexAcceptedResponse,
    status_code=202,
    summary="Queue a saved SOAP note for indexing",
)
async def index_note(
    request: IndexRequest,
    background_tasks: BackgroundTasks,
    tenant_id: str = Depends(get_tenant_id),
    indexing: IndexingService = Depends(get_indexing_service),
    resolver: PatientResolver = Depends(get_patient_resolver),
) -> IndexAcceptedResponse:
    """
    Index every non-empty section of a saved note in the background.

    Indexing never blocks or fails the save: the endpoint returns 202
    immediately and errors are only logged.
    """
    note = SoapNote(
        subjective=request.subjective,
        objective=request.objective,
        assessment=request.assessment,
        plan=request.plan,
    )
    fields = [field for field, _ in note.sections()]
    if fields:
        background_tasks.add_task(
            _run_index,
            indexing,
            resolver,
            tenant_id,
            note,
            request.patient_id,
            request.patient,
            request.doctor_id,
        )
    return IndexAcceptedResponse(fields=fields)


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Suggestion index statistics",
    dependencies=[Depends(get_tenant_id)],
    responses={
        404: {"description": "Index does not exist"},
        503: {"description": "Elasticsearch unreachable"},
    },
)
async def stats(
    client: SuggestionIndexClient = Depends(get_search_index),
) -> StatsResponse:
    """Document count and sizes of the suggestion index."""
    try:
        data = await client.index_stats()
    except IndexUnavailableError as e:
        logger.warning("Stats unavailable: %s", e)
        raise HTTPException(status_code=503, detail="Elasticsearch unreachable") from e

    if data is None or client.index not in data.get("indices", {}):
        raise HTTPException(status_code=404, detail="Elasticsearch index not found")

    return StatsResponse(
        stats=_index_stats(data, client.index),
        timestamp=datetime.now(UTC),
    )


def _index_stats(data: dict[str, Any], index: str) -> IndexStats:
    total = data["indices"][index].get("total", {})
    shards = data.get("_shards", {})
    return IndexStats(
        total_docs=total.get("docs", {}).get("count", 0),
        index_size=total.get("store", {}).get("size_in_bytes", 0),
        field_data_size=total.get("fielddata", {}).get("memory_size_in_bytes", 0),
        shards=ShardStats(
            total=shards.get("total", 0),
            successful=shards.get("successful", 0),
            failed=shards.get("failed", 0),
        ),
    )
