"""
Fallback Template Unit Tests

The template generator must be deterministic, never empty and never leave
a placeholder unresolved, whatever the patient context.
"""

from __future__ import annotations

import pytest

from soap_assist.models.schemas import PatientContext, SoapField
from soap_assist.services.templates import (
    DEFAULT_CONDITION,
    fallback_paraphrases,
    template,
)


def _assert_resolved(text: str) -> None:
    assert text.strip()
    assert "{" not in text
    assert "}" not in text


class TestTemplate:
    """template(field, patient)."""

    @pytest.mark.parametrize("field", list(SoapField))
    def test_every_section_without_patient(self, field: SoapField) -> None:
        text = template(field)
        _assert_resolved(text)
        assert text.startswith("unknown unknown, unknown age, unknown sex: ")
        assert DEFAULT_CONDITION in text

    def test_full_patient_context(self) -> None:
        patient = PatientContext(
            species="Dog", breed="Beagle", age=4, sex="male", reason="ear infection"
        )
        text = template(SoapField.ASSESSMENT, patient)

        assert text == (
            "Dog Beagle, 4 age, male sex: Probable ear infection based on clinical signs."
        )

    def test_fractional_age(self) -> None:
        text = template(SoapField.SUBJECTIVE, PatientContext(age=0.5))
        assert ", 0.5 age," in text

    def test_partial_context_fills_unknown(self) -> None:
        text = template(SoapField.PLAN, PatientContext(species="cat", breed="   "))
        _assert_resolved(text)
        assert text.startswith("cat unknown, unknown age, unknown sex: ")

    @pytest.mark.parametrize("field", ["history", "", None, "PLAN"])
    def test_unusual_field_values_never_raise(self, field) -> None:
        _assert_resolved(template(field))

    def test_unknown_field_uses_subjective(self) -> None:
        assert template("history") == template(SoapField.SUBJECTIVE)

    def test_deterministic(self) -> None:
        patient = PatientContext(species="dog", reason="vomiting")
        assert template(SoapField.OBJECTIVE, patient) == template(
            SoapField.OBJECTIVE, patient
        )


class TestFallbackParaphrases:
    """fallback_paraphrases(field, text, patient)."""

    def test_rewrites_lowercased_text_without_trailing_period(self) -> None:
        results = fallback_paraphrases(
            SoapField.OBJECTIVE, "  Mild Erythema Of The Left Ear. "
        )
        assert results[0] == "Physical examination reveals mild erythema of the left ear."
        assert len(results) == 4

    def test_subjective_uses_species_and_age_group(self) -> None:
        patient = PatientContext(species="Cat", age=10)
        results = fallback_paraphrases("subjective", "vomiting twice daily", patient)

        assert "Client observed vomiting twice daily in the cat." in results
        assert "cat (senior) showing signs of vomiting twice daily." in results

    def test_defaults_without_patient(self) -> None:
        results = fallback_paraphrases("subjective", "coughing at night")
        assert "Client observed coughing at night in the patient." in results
        for text in results:
            _assert_resolved(text)
