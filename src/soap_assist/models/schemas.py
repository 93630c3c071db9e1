"""
SOAP Suggestion Domain Schemas

Pydantic models shared by the indexing and query services: SOAP sections,
age buckets, patient context, the indexed document and the transient
suggestion returned to callers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Final

from pydantic import BaseModel, Field, field_validator

# Number of leading words stored for prefix completion
PREFIX_WORDS: Final[int] = 5


class SoapField(str, Enum):
    """The four sections of a SOAP note."""

    SUBJECTIVE = "subjective"
    OBJECTIVE = "objective"
    ASSESSMENT = "assessment"
    PLAN = "plan"


class AgeBucket(str, Enum):
    """Coarse life stage used as a search filter."""

    PUPPY = "puppy"
    ADULT = "adult"
    SENIOR = "senior"


class SuggestionSource(str, Enum):
    """Provenance of a suggestion."""

    ELASTICSEARCH = "elasticsearch"
    FALLBACK = "fallback"
    OPENAI = "openai"


def age_bucket_for(age: float | None) -> AgeBucket | None:
    """
    Derive the age bucket from an age in years.

    Only ``age < 1`` is a puppy and only ``age > 7`` is a senior;
    both boundaries (1 and 7) are adults. Unknown age has no bucket.
    """
    if age is None:
        return None
    if age < 1:
        return AgeBucket.PUPPY
    if age > 7:
        return AgeBucket.SENIOR
    return AgeBucket.ADULT


def _keyword(value: str | None) -> str:
    """Normalize a descriptor for keyword storage and term filters."""
    cleaned = (value or "").strip().lower()
    return cleaned or "unknown"


class PatientContext(BaseModel):
    """Patient attributes used to filter and parameterize suggestions."""

    id: str | None = None
    species: str | None = None
    breed: str | None = None
    age: float | None = Field(default=None, ge=0)
    sex: str | None = None
    name: str | None = None
    reason: str | None = Field(default=None, description="Visit reason")
    age_group: AgeBucket | None = Field(
        default=None,
        description="Explicit age bucket; overrides the one derived from age",
    )

    @field_validator("age_group", mode="before")
    @classmethod
    def _lowercase_age_group(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @property
    def age_bucket(self) -> AgeBucket | None:
        return self.age_group or age_bucket_for(self.age)

    def merged_with(self, other: PatientContext) -> PatientContext:
        """Return a copy where every non-null attribute of ``other`` wins."""
        updates = other.model_dump(exclude_none=True)
        return self.model_copy(update=updates)


class SoapNote(BaseModel):
    """A whole SOAP note as saved with a visit."""

    subjective: str | None = None
    objective: str | None = None
    assessment: str | None = None
    plan: str | None = None

    def sections(self) -> list[tuple[SoapField, str]]:
        """Non-empty sections in S, O, A, P order."""
        result: list[tuple[SoapField, str]] = []
        for field in SoapField:
            text = getattr(self, field.value)
            if text and text.strip():
                result.append((field, text))
        return result


class SuggestionDocument(BaseModel):
    """
    One indexed SOAP section.

    Documents are insert-only: saving the same text again produces a new
    document, so recency ordering reflects how often a phrasing is reused.

    Attributes:
        field: SOAP section the text belongs to.
        text: Trimmed section text (never empty).
        text_prefix: First words of the text, fed to the completion suggester.
        species / breed: Lower-cased descriptors ("unknown" when missing).
        age_bucket: Life stage, None when the age is unknown.
        pet_id / tenant_id: Ownership keys; tenant_id scopes every query.
        veterinarian_id: Author of the note, used to narrow suggestions to
            one clinician's phrasing.
        created_at / updated_at: Timestamps (recency tie-break); the visit
            date when stored records are reindexed.
    """

    field: SoapField
    text: str = Field(min_length=1)
    text_prefix: str
    species: str = "unknown"
    breed: str = "unknown"
    age_bucket: AgeBucket | None = None
    pet_id: str | None = None
    veterinarian_id: str | None = None
    tenant_id: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def build(
        cls,
        field: SoapField | str,
        text: str | None,
        patient: PatientContext | None,
        tenant_id: str,
        now: datetime | None = None,
        veterinarian_id: str | None = None,
    ) -> SuggestionDocument | None:
        """
        Build a document for a section, or None if the text is blank.

        Raises:
            ValueError: If ``field`` is not a SOAP section.
        """
        section = SoapField(field)
        cleaned = (text or "").strip()
        if not cleaned:
            return None

        patient = patient or PatientContext()
        timestamp = now or datetime.now(UTC)
        return cls(
            field=section,
            text=cleaned,
            text_prefix=" ".join(cleaned.split()[:PREFIX_WORDS]),
            species=_keyword(patient.species),
            breed=_keyword(patient.breed),
            age_bucket=patient.age_bucket,
            pet_id=patient.id,
            veterinarian_id=(veterinarian_id or "").strip() or None,
            tenant_id=tenant_id,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def to_source(self) -> dict[str, Any]:
        """Serialize to the Elasticsearch ``_source`` layout."""
        source: dict[str, Any] = {
            "field": self.field.value,
            "text": self.text,
            "text_suggest": {"input": [self.text_prefix]},
            "species": self.species,
            "breed": self.breed,
            "pet_id": self.pet_id,
            "veterinarian_id": self.veterinarian_id,
            "tenant_id": self.tenant_id,
            "created_date": self.created_at.isoformat(),
            "updated_date": self.updated_at.isoformat(),
        }
        if self.age_bucket is not None:
            source["age_bucket"] = self.age_bucket.value
        return source


class Suggestion(BaseModel):
    """A candidate completion returned to the caller (never persisted)."""

    text: str
    score: float | None = None
    source: SuggestionSource
    species: str | None = None
    breed: str | None = None
    age_bucket: AgeBucket | None = None

    @classmethod
    def from_hit(cls, hit: dict[str, Any]) -> Suggestion:
        """Build from an Elasticsearch search hit."""
        source = hit.get("_source") or {}
        return cls(
            text=source.get("text", ""),
            score=hit.get("_score"),
            source=SuggestionSource.ELASTICSEARCH,
            species=source.get("species"),
            breed=source.get("breed"),
            age_bucket=source.get("age_bucket"),
        )
