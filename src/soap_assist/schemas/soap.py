"""
SOAP Assist API Schemas

Pydantic models for the suggestion endpoints' request/response cycle.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from soap_assist.core.config import settings
from soap_assist.models.schemas import (
    AgeBucket,
    PatientContext,
    SoapField,
    SoapNote,
    Suggestion,
    SuggestionSource,
)


def _lowercase(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower() or None
    return value


# Accepts "Senior", " PUPPY " etc.
AgeGroup = Annotated[AgeBucket | None, BeforeValidator(_lowercase)]


class _ContextRequest(BaseModel):
    """Fields shared by the suggest and paraphrase requests."""

    field: SoapField = Field(description="SOAP section being edited")
    input_text: str = Field(
        ...,
        min_length=1,
        max_length=settings.MAX_INPUT_LENGTH,
        description="Text typed so far",
    )
    species: str | None = Field(default=None, description="Patient species")
    age_group: AgeGroup = Field(
        default=None,
        description="Life stage: puppy, adult or senior (case-insensitive)",
    )
    reason: str | None = Field(default=None, description="Visit reason")

    def patient_context(self, patient_id: str | None = None) -> PatientContext:
        """Patient context carried by the flat request fields."""
        return PatientContext(
            id=patient_id,
            species=self.species,
            age_group=self.age_group,
            reason=self.reason,
        )


class SuggestRequest(_ContextRequest):
    """Request body for ranked suggestions."""

    patient_id: str | None = Field(
        default=None,
        description="Pet id; stored species / breed / age are looked up",
    )
    doctor_id: str | None = Field(
        default=None,
        description="Only suggest from notes written by this clinician",
    )
    use_prompt: bool = Field(
        default=False,
        description="Generate suggestions with the LLM instead of the index",
    )
    limit: int = Field(default=5, ge=1, le=20, description="Maximum suggestions")


class ParaphraseRequest(_ContextRequest):
    """Request body for clinical rewrites of a note."""

    use_prompt: bool = Field(
        default=True,
        description="Use the LLM; rule-based templates are used otherwise",
    )


class AutocompleteRequest(BaseModel):
    """Request body for the single-suggestion endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    field: SoapField = Field(description="SOAP section being edited")
    current_text: str = Field(
        ...,
        alias="currentText",
        min_length=1,
        max_length=settings.MAX_INPUT_LENGTH,
        description="Full text of the section",
    )
    patient: PatientContext | None = Field(default=None, description="Patient context")


class CompleteRequest(BaseModel):
    """Request body for prefix completion (ghost text)."""

    field: SoapField = Field(description="SOAP section being edited")
    input_text: str = Field(
        ...,
        min_length=1,
        max_length=settings.MAX_INPUT_LENGTH,
        description="Prefix typed so far",
    )
    limit: int = Field(default=5, ge=1, le=20, description="Maximum completions")


class IndexRequest(SoapNote):
    """A saved SOAP note to add to the suggestion index."""

    patient_id: str | None = Field(default=None, description="Pet id")
    patient: PatientContext | None = Field(default=None, description="Patient context")
    doctor_id: str | None = Field(default=None, description="Clinician who wrote the note")


class SuggestionOut(BaseModel):
    """Single suggestion returned to the client."""

    text: str = Field(description="Suggested text")
    source: SuggestionSource = Field(description="elasticsearch, fallback or openai")
    score: float | None = Field(default=None, description="Relevance score")

    @classmethod
    def from_suggestion(cls, suggestion: Suggestion) -> SuggestionOut:
        return cls(text=suggestion.text, source=suggestion.source, score=suggestion.score)


class SuggestResponse(BaseModel):
    """Response for ranked suggestions."""

    success: bool = True
    suggestions: list[SuggestionOut] = Field(default_factory=list)


class ParaphraseResponse(BaseModel):
    """Response for clinical rewrites."""

    success: bool = True
    paraphrases: list[str] = Field(default_factory=list)
    source: SuggestionSource = Field(description="openai or fallback")


class AutocompleteResponse(BaseModel):
    """Response for the single-suggestion endpoint."""

    success: bool = True
    suggestion: str = Field(description="Best suggestion (never empty)")
    source: SuggestionSource
    patient: PatientContext | None = Field(
        default=None, description="Effective patient context used for the query"
    )


class CompleteResponse(BaseModel):
    """Response for prefix completion."""

    success: bool = True
    completions: list[SuggestionOut] = Field(default_factory=list)


class IndexAcceptedResponse(BaseModel):
    """Response for a note accepted for background indexing."""

    status: str = Field(default="accepted")
    fields: list[SoapField] = Field(
        default_factory=list, description="Non-empty sections queued for indexing"
    )


class ShardStats(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class IndexStats(BaseModel):
    """Size figures of the suggestion index."""

    total_docs: int = Field(description="Number of indexed documents")
    index_size: int = Field(description="Store size in bytes")
    field_data_size: int = Field(description="Field data memory in bytes")
    shards: ShardStats


class StatsResponse(BaseModel):
    success: bool = True
    stats: IndexStats
    timestamp: datetime


class ElasticsearchHealth(BaseModel):
    status: str = Field(description="Cluster status (green, yellow, red) or 'unreachable'")
    cluster_name: str | None = None


class DatabaseHealth(BaseModel):
    status: str = Field(description="'connected' or 'disconnected'")


class HealthResponse(BaseModel):
    """Dependency health for load balancers and orchestrators."""

    ok: bool
    timestamp: datetime
    elasticsearch: ElasticsearchHealth
    database: DatabaseHealth
