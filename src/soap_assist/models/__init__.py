"""Models package: domain schemas and SQLAlchemy ORM for the record store."""

from soap_assist.models.base import Base, TimestampMixin
from soap_assist.models.orm import MedicalRecord, Pet
from soap_assist.models.schemas import (
    AgeBucket,
    PatientContext,
    SoapField,
    SoapNote,
    Suggestion,
    SuggestionDocument,
    SuggestionSource,
    age_bucket_for,
)

__all__ = [
    # Domain schemas
    "AgeBucket",
    "PatientContext",
    "SoapField",
    "SoapNote",
    "Suggestion",
    "SuggestionDocument",
    "SuggestionSource",
    "age_bucket_for",
    # SQLAlchemy ORM (record store)
    "Base",
    "TimestampMixin",
    "MedicalRecord",
    "Pet",
]
