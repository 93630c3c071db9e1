"""
Fallback Template Generator

Rule-based text used when the suggestion index or the LLM cannot help.
Everything here is pure: no I/O, deterministic output, never raises and
never returns an empty string.
"""

from __future__ import annotations

from typing import Final

from soap_assist.models.schemas import PatientContext, SoapField

UNKNOWN: Final[str] = "unknown"
DEFAULT_CONDITION: Final[str] = "the presenting complaint"

_HEADER: Final[str] = "{species} {breed}, {age} age, {sex} sex: "

FALLBACK_TEMPLATES: Final[dict[SoapField, str]] = {
    SoapField.SUBJECTIVE: _HEADER + "Patient presents with {condition}.",
    SoapField.OBJECTIVE: _HEADER
    + "Vital signs and physical examination findings recorded for {condition}.",
    SoapField.ASSESSMENT: _HEADER + "Probable {condition} based on clinical signs.",
    SoapField.PLAN: _HEADER
    + "Treatment plan for {condition}; recheck if signs persist or worsen.",
}

PARAPHRASE_TEMPLATES: Final[dict[SoapField, tuple[str, ...]]] = {
    SoapField.SUBJECTIVE: (
        "Owner reports {text}.",
        "Client observed {text} in the {species}.",
        "Patient presents with history of {text}.",
        "{species} ({age_group}) showing signs of {text}.",
    ),
    SoapField.OBJECTIVE: (
        "Physical examination reveals {text}.",
        "Clinical findings include {text}.",
        "On examination: {text}.",
        "Examination demonstrates {text}.",
    ),
    SoapField.ASSESSMENT: (
        "Probable diagnosis: {text}.",
        "Assessment consistent with {text}.",
        "Clinical impression: {text}.",
        "Differential diagnosis includes {text}.",
    ),
    SoapField.PLAN: (
        "Treatment plan: {text}.",
        "Recommendations: {text}.",
        "Management strategy: {text}.",
        "Follow-up plan: {text}.",
    ),
}


def _section(field: SoapField | str | None) -> SoapField:
    """Resolve a section name, defaulting to subjective for anything unknown."""
    if isinstance(field, str) and not isinstance(field, SoapField):
        field = field.strip().lower()
    try:
        return SoapField(field)
    except ValueError:
        return SoapField.SUBJECTIVE


def _describe(value: str | None) -> str:
    cleaned = (value or "").strip()
    return cleaned or UNKNOWN


def _format_age(age: float | None) -> str:
    if age is None:
        return UNKNOWN
    if float(age).is_integer():
        return str(int(age))
    return f"{age:g}"


def template(
    field: SoapField | str | None,
    patient: PatientContext | None = None,
) -> str:
    """
    Synthesize a deterministic suggestion for a SOAP section.

    Args:
        field: SOAP section; unknown values use the subjective template.
        patient: Optional context. Missing attributes render as "unknown"
            and a missing visit reason as "the presenting complaint".

    Returns:
        A non-empty sentence with every placeholder resolved.
    """
    patient = patient or PatientContext()
    return FALLBACK_TEMPLATES[_section(field)].format(
        species=_describe(patient.species),
        breed=_describe(patient.breed),
        age=_format_age(patient.age),
        sex=_describe(patient.sex),
        condition=(patient.reason or "").strip() or DEFAULT_CONDITION,
    )


def fallback_paraphrases(
    field: SoapField | str | None,
    text: str,
    patient: PatientContext | None = None,
) -> list[str]:
    """
    Rule-based rewrites of a note, used when no LLM is available.

    The input is trimmed, lower-cased and stripped of a trailing period
    before being slotted into each section-specific phrasing.
    """
    patient = patient or PatientContext()
    body = text.strip().rstrip(".").lower()
    bucket = patient.age_bucket
    values = {
        "text": body,
        "species": (patient.species or "").strip().lower() or "patient",
        "age_group": bucket.value if bucket else "adult",
    }
    return [
        phrasing.format(**values) for phrasing in PARAPHRASE_TEMPLATES[_section(field)]
    ]
