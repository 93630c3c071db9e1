"""
SOAP Assist HTTP Client

Async client for the suggestion endpoints, used by editors embedding the
``SuggestionController``. Responses are validated with the same Pydantic
models the server renders.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from soap_assist.core.config import settings
from soap_assist.models.schemas import PatientContext, SoapField
from soap_assist.schemas.soap import (
    AutocompleteResponse,
    CompleteResponse,
    ParaphraseResponse,
    SuggestionOut,
    SuggestResponse,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/soap"


class SoapAssistClient:
    """
    Thin async wrapper over the SOAP suggestion API.

    Usage::

        async with SoapAssistClient("http://localhost:8000", tenant_id="clinic-1") as api:
            suggestions = await api.suggest(SoapField.PLAN, "Amoxicillin 10 mg/kg")

    Raises:
        httpx.HTTPStatusError: On 4xx/5xx responses.
        httpx.RequestError: On connection failures and timeouts.
    """

    def __init__(
        self,
        base_url: str,
        tenant_id: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}{API_PREFIX}",
            headers={settings.TENANT_HEADER: tenant_id},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> SoapAssistClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post(path, json=payload)
        response.raise_for_status()
        return response.json()

    async def suggest(
        self,
        field: SoapField,
        text: str,
        patient: PatientContext | None = None,
        limit: int = 5,
        use_prompt: bool = False,
        doctor_id: str | None = None,
    ) -> list[SuggestionOut]:
        """Ranked suggestions for the text typed so far."""
        payload: dict[str, Any] = {
            "field": SoapField(field).value,
            "input_text": text,
            "limit": limit,
            "use_prompt": use_prompt,
        }
        payload.update(_patient_fields(patient))
        if doctor_id:
            payload["doctor_id"] = doctor_id
        data = await self._post("/suggest", payload)
        return SuggestResponse.model_validate(data).suggestions

    async def paraphrase(
        self,
        field: SoapField,
        text: str,
        patient: PatientContext | None = None,
        use_prompt: bool = True,
    ) -> list[str]:
        """Clinical rewrites of the whole note."""
        payload: dict[str, Any] = {
            "field": SoapField(field).value,
            "input_text": text,
            "use_prompt": use_prompt,
        }
        patient_fields = _patient_fields(patient)
        patient_fields.pop("patient_id", None)
        payload.update(patient_fields)
        data = await self._post("/paraphrase", payload)
        return ParaphraseResponse.model_validate(data).paraphrases

    async def complete(self, field: SoapField, text: str, limit: int = 5) -> list[str]:
        """Prefix completions for ghost text."""
        payload = {"field": SoapField(field).value, "input_text": text, "limit": limit}
        data = await self._post("/complete", payload)
        return [c.text for c in CompleteResponse.model_validate(data).completions]

    async def autocomplete(
        self,
        field: SoapField,
        text: str,
        patient: PatientContext | None = None,
    ) -> AutocompleteResponse:
        """Single best suggestion (template fallback included)."""
        payload: dict[str, Any] = {"field": SoapField(field).value, "currentText": text}
        if patient is not None:
            payload["patient"] = patient.model_dump(mode="json", exclude_none=True)
        data = await self._post("/autocomplete", payload)
        return AutocompleteResponse.model_validate(data)


def _patient_fields(patient: PatientContext | None) -> dict[str, Any]:
    """Flatten a patient context into the suggest/paraphrase request fields."""
    if patient is None:
        return {}
    fields: dict[str, Any] = {
        "patient_id": patient.id,
        "species": patient.species,
        "reason": patient.reason,
    }
    bucket = patient.age_bucket
    if bucket is not None:
        fields["age_group"] = bucket.value
    return {k: v for k, v in fields.items() if v is not None}
