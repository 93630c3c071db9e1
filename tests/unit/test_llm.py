"""
LLM Service Unit Tests

Tests for prompted suggestions and paraphrasing with a mocked OpenAI
client. No external API calls: runs without network or API keys.
"""

from unittest.mock import AsyncMock, patch

import pytest
from openai import OpenAIError

from soap_assist.models.schemas import PatientContext, SoapField
from soap_assist.services.llm import LLMService, llm_service, parse_numbered_list


def _completion(content: str):
    """Build an object matching the OpenAI SDK chat completion structure."""
    message = type("Message", (), {"content": content})
    choice = type("Choice", (), {"message": message})
    return type("Completion", (), {"choices": [choice]})


@pytest.mark.asyncio
async def test_mock_mode_makes_no_call():
    """Without a real key the service answers immediately, flagged as mocked."""
    with patch("soap_assist.services.llm.AsyncOpenAI") as MockClient:
        response = await LLMService(api_key="mock").suggest(SoapField.PLAN, "recheck")

    assert response.is_mocked
    assert response.lines == []
    MockClient.assert_not_called()


@pytest.mark.asyncio
async def test_suggest_parses_numbered_list():
    """
    Verify suggest() sends the section and patient context and parses the
    numbered answer into at most ``limit`` lines.
    """
    content = "1. BAR, T 101.5F\n2. MM pink, CRT < 2s\n3) Mild dehydration\n4. HR 120"

    with patch("soap_assist.services.llm.AsyncOpenAI") as MockClient:
        mock_instance = MockClient.return_value
        mock_instance.chat.completions.create = AsyncMock(return_value=_completion(content))

        service = LLMService(api_key="sk-test", model="gpt-4o-mini")
        response = await service.suggest(
            SoapField.OBJECTIVE,
            "bright alert",
            PatientContext(species="cat", age=12, reason="weight loss"),
            limit=3,
        )

    assert not response.is_mocked
    assert response.lines == ["BAR, T 101.5F", "MM pink, CRT < 2s", "Mild dehydration"]

    _, kwargs = mock_instance.chat.completions.create.call_args
    assert kwargs["model"] == "gpt-4o-mini"
    prompt = kwargs["messages"][1]["content"]
    assert '"objective" section' in prompt
    assert "Species: cat" in prompt
    assert "Age group: senior" in prompt
    assert "Visit reason: weight loss" in prompt


@pytest.mark.asyncio
async def test_paraphrase_api_error_degrades_to_mocked():
    """OpenAI failures are logged and reported as mocked, never raised."""
    with patch("soap_assist.services.llm.AsyncOpenAI") as MockClient:
        MockClient.return_value.chat.completions.create = AsyncMock(
            side_effect=OpenAIError("rate limited")
        )
        response = await LLMService(api_key="sk-test").paraphrase(
            SoapField.SUBJECTIVE, "dog vomiting since yesterday"
        )

    assert response.is_mocked
    assert response.lines == []


@pytest.mark.asyncio
async def test_empty_answer_is_treated_as_mocked():
    with patch("soap_assist.services.llm.AsyncOpenAI") as MockClient:
        MockClient.return_value.chat.completions.create = AsyncMock(
            return_value=_completion("")
        )
        response = await LLMService(api_key="sk-test").paraphrase(
            SoapField.PLAN, "rest and recheck"
        )

    assert response.is_mocked


def test_parse_numbered_list():
    text = "Here you go:\n\n1. First\n- Second\n* Third\n  2) Fourth  \n"
    assert parse_numbered_list(text, limit=10) == [
        "Here you go:",
        "First",
        "Second",
        "Third",
        "Fourth",
    ]
    assert parse_numbered_list(text, limit=2) == ["Here you go:", "First"]


def test_dependency_returns_shared_instance():
    """Requests share one service, so at most one OpenAI pool is opened."""
    from soap_assist.api.deps import get_llm_service

    assert get_llm_service() is llm_service
    assert get_llm_service() is get_llm_service()


@pytest.mark.asyncio
async def test_aclose_closes_openai_client():
    service = LLMService(api_key="sk-test")
    with patch("soap_assist.services.llm.AsyncOpenAI") as MockClient:
        MockClient.return_value.close = AsyncMock()
        service._get_client()
        await service.aclose()
        await service.aclose()

    MockClient.return_value.close.assert_awaited_once()
    assert service._client is None
