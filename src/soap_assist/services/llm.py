"""
LLM Service

OpenAI chat-completion integration for prompted SOAP suggestions and
"clinically correct" paraphrasing.

Design:
    - Mock mode when OPENAI_API_KEY is missing or set to 'mock': no network
      call, the response is flagged ``is_mocked`` and carries no lines.
    - Graceful degradation: API errors are logged and reported the same way,
      so callers fall back to the index or the rule-based templates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Final

from openai import AsyncOpenAI, OpenAIError

from soap_assist.core.config import settings
from soap_assist.models.schemas import PatientContext, SoapField

logger = logging.getLogger(__name__)

SUGGEST_SYSTEM_PROMPT: Final[str] = (
    "You are a veterinary clinical assistant helping a veterinarian write "
    "accurate, professional SOAP notes."
)

SUGGEST_PROMPT: Final[str] = """Write 3 to 5 realistic continuations for the "{section}" section of a veterinary SOAP note.

Style:
- Concise, professional clinical language, as a veterinarian would chart it.
- Use standard terms and abbreviations where natural (BAR, T, HR, RR, CRT, BID, SID).
- No generic statements such as "the pet is sick".
- Every line must belong to the {section} section.

Return a numbered list, one suggestion per line.

Input: {text}
Species: {species}
Age group: {age_group}
Visit reason: {reason}
"""

PARAPHRASE_SYSTEM_PROMPT: Final[str] = (
    "You are a senior veterinarian who rewrites casual observations into "
    "precise veterinary medical documentation."
)

PARAPHRASE_PROMPT: Final[str] = """Rewrite this "{section}" note for the medical record.

Guidelines:
- Clinical tone: clear, concise, professional.
- Use common veterinary abbreviations (BID, SID, MM, CRT).
- Keep the medical meaning intact; do not add findings.

Note: "{text}"

Species: {species}
Age group: {age_group}
Visit reason: {reason}

Give 3 variations as a numbered list."""

# "1. ", "2) ", "- ", "* " prefixes of list items
_LIST_MARKER = re.compile(r"^\s*(?:\d+[.)]|[-*])\s*")


@dataclass
class LLMResponse:
    """
    Response from the LLM service.

    Attributes:
        lines: Parsed list items (empty when mocked).
        is_mocked: True if no model was called or the call failed.
    """

    lines: list[str] = field(default_factory=list)
    is_mocked: bool = False


def parse_numbered_list(text: str, limit: int) -> list[str]:
    """Split a numbered / bulleted completion into at most ``limit`` items."""
    items: list[str] = []
    for line in text.splitlines():
        cleaned = _LIST_MARKER.sub("", line).strip()
        if cleaned:
            items.append(cleaned)
    return items[:limit]


class LLMService:
    """
    Async OpenAI wrapper with mock mode.

    Usage::

        service = LLMService()
        response = await service.paraphrase(SoapField.PLAN, text, patient)
        if response.is_mocked:
            ...  # use templates.fallback_paraphrases
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self._model = model or settings.OPENAI_MODEL
        self._timeout = timeout or settings.OPENAI_TIMEOUT
        self._client: AsyncOpenAI | None = None

    @property
    def enabled(self) -> bool:
        """False in mock mode (no key, or the literal 'mock')."""
        return bool(self._api_key) and self._api_key.lower() != "mock"

    async def suggest(
        self,
        field: SoapField,
        text: str,
        patient: PatientContext | None = None,
        limit: int = 5,
    ) -> LLMResponse:
        """Generate up to ``limit`` suggestions for a SOAP section."""
        prompt = SUGGEST_PROMPT.format(section=field.value, text=text, **_context(patient))
        return await self._generate(
            SUGGEST_SYSTEM_PROMPT, prompt, limit, max_tokens=256, temperature=0.6
        )

    async def paraphrase(
        self,
        field: SoapField,
        text: str,
        patient: PatientContext | None = None,
    ) -> LLMResponse:
        """Generate clinically phrased rewrites of the full note text."""
        prompt = PARAPHRASE_PROMPT.format(
            section=field.value, text=text, **_context(patient)
        )
        return await self._generate(
            PARAPHRASE_SYSTEM_PROMPT, prompt, limit=4, max_tokens=600, temperature=0.7
        )

    async def _generate(
        self,
        system: str,
        prompt: str,
        limit: int,
        max_tokens: int,
        temperature: float,
    ) -> LLMResponse:
        if not self.enabled:
            return LLMResponse(is_mocked=True)

        try:
            completion = await self._get_client().chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except OpenAIError as e:
            logger.warning("OpenAI call failed (%s): %s", type(e).__name__, e)
            return LLMResponse(is_mocked=True)

        content = completion.choices[0].message.content or ""
        lines = parse_numbered_list(content, limit)
        logger.info("OpenAI returned %d items (model=%s)", len(lines), self._model)
        return LLMResponse(lines=lines, is_mocked=not lines)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the OpenAI connection pool, if one was opened."""
        if self._client is not None:
            await self._client.close()
            self._client = None


def _context(patient: PatientContext | None) -> dict[str, str]:
    patient = patient or PatientContext()
    bucket = patient.age_bucket
    return {
        "species": patient.species or "unknown",
        "age_group": bucket.value if bucket else "unknown",
        "reason": patient.reason or "not specified",
    }


# Singleton instance
llm_service = LLMService()
