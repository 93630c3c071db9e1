"""
Suggestion Query Service Unit Tests

Verifies the short-text short-circuit, query shape, ranking, fallback on
index unavailability, prefix completion and tenant isolation end-to-end
(index through the IndexingService, read through the query service).
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from soap_assist.core.exceptions import MissingTenantError
from soap_assist.models.schemas import (
    AgeBucket,
    PatientContext,
    SoapField,
    SuggestionSource,
)
from soap_assist.services.index_client import SuggestionIndexClient
from soap_assist.services.indexing import IndexingService
from soap_assist.services.llm import LLMResponse, LLMService
from soap_assist.services.suggestions import SuggestionQueryService
from tests.fakes import FakeElasticsearch

DOG = PatientContext(species="dog", breed="beagle", age=4, sex="male")


@pytest.fixture
def service(index_client: SuggestionIndexClient) -> SuggestionQueryService:
    return SuggestionQueryService(index_client, min_chars=3)


@pytest.fixture
def indexing(index_client: SuggestionIndexClient) -> IndexingService:
    return IndexingService(index_client)


# ---------------------------------------------------------------------------
# suggest
# ---------------------------------------------------------------------------


class TestSuggest:
    """SuggestionQueryService.suggest."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "ab", "  ab  ", "\n"])
    async def test_short_text_makes_no_request(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch, text: str
    ) -> None:
        assert await service.suggest(SoapField.PLAN, text, DOG, "c1") == []
        assert fake_es.requests == []

    @pytest.mark.asyncio
    async def test_query_shape(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        fake_es.exists = True
        patient = PatientContext(species="Dog", age=10)

        await service.suggest(SoapField.ASSESSMENT, "otitis", patient, "c1", limit=3)

        (body,) = fake_es.search_bodies()
        bool_query = body["query"]["bool"]
        assert bool_query["must"][0] == {"term": {"field": "assessment"}}
        multi_match = bool_query["must"][1]["multi_match"]
        assert multi_match["fields"] == ["text^2", "text.keyword"]
        assert multi_match["type"] == "best_fields"
        assert multi_match["fuzziness"] == "AUTO"
        assert bool_query["filter"] == [
            {"term": {"tenant_id": "c1"}},
            {"term": {"species": "dog"}},
            {"term": {"age_bucket": "senior"}},
        ]
        assert body["sort"] == [
            {"_score": {"order": "desc"}},
            {"created_date": {"order": "desc"}},
        ]
        assert body["size"] == 3

    @pytest.mark.asyncio
    async def test_no_species_or_age_filter_without_context(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        fake_es.exists = True

        await service.suggest(SoapField.PLAN, "recheck", None, "c1")

        (body,) = fake_es.search_bodies()
        assert body["query"]["bool"]["filter"] == [{"term": {"tenant_id": "c1"}}]

    @pytest.mark.asyncio
    async def test_doctor_narrows_to_their_notes(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        for vet, text in [("dr-lee", "Recheck in 10 days"), ("dr-kim", "Recheck PRN")]:
            fake_es.add_document(
                {"field": "plan", "text": text, "tenant_id": "c1", "veterinarian_id": vet}
            )

        results = await service.suggest(
            SoapField.PLAN, "recheck", None, "c1", doctor_id="dr-lee"
        )

        assert [r.text for r in results] == ["Recheck in 10 days"]
        (body,) = fake_es.search_bodies()
        assert {"term": {"veterinarian_id": "dr-lee"}} in body["query"]["bool"]["filter"]

        everyone = await service.suggest(SoapField.PLAN, "recheck", None, "c1")
        assert len(everyone) == 2

    @pytest.mark.asyncio
    async def test_ranked_by_score_then_recency(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        def doc(text: str, created: str) -> dict:
            return {
                "field": "plan",
                "text": text,
                "species": "dog",
                "age_bucket": "adult",
                "tenant_id": "c1",
                "created_date": created,
            }

        fake_es.add_document(doc("Clean ears daily", "2026-01-01T00:00:00+00:00"))
        fake_es.add_document(doc("Recheck ears in two weeks", "2026-01-02T00:00:00+00:00"))
        fake_es.add_document(doc("Recheck in one week", "2026-01-03T00:00:00+00:00"))

        results = await service.suggest(SoapField.PLAN, "recheck ears", DOG, "c1")

        assert [r.text for r in results] == [
            "Recheck ears in two weeks",
            "Recheck in one week",
            "Clean ears daily",
        ]
        assert all(r.source is SuggestionSource.ELASTICSEARCH for r in results)
        assert results[0].age_bucket is AgeBucket.ADULT

    @pytest.mark.asyncio
    async def test_species_filter_excludes_other_species(
        self, service: SuggestionQueryService, indexing: IndexingService
    ) -> None:
        cat = PatientContext(species="cat", age=4)
        await indexing.index_field(SoapField.SUBJECTIVE, "Vomiting hairballs", cat, "c1")
        await indexing.index_field(SoapField.SUBJECTIVE, "Vomiting after meals", DOG, "c1")

        results = await service.suggest(SoapField.SUBJECTIVE, "vomiting", DOG, "c1")

        assert [r.text for r in results] == ["Vomiting after meals"]

    @pytest.mark.asyncio
    async def test_no_hits_returns_empty(
        self, service: SuggestionQueryService, indexing: IndexingService
    ) -> None:
        await indexing.index_field(SoapField.PLAN, "Bland diet", DOG, "c1")

        assert await service.suggest(SoapField.PLAN, "surgery", DOG, "c1") == []

    @pytest.mark.asyncio
    async def test_missing_index_returns_empty(
        self, service: SuggestionQueryService
    ) -> None:
        assert await service.suggest(SoapField.PLAN, "recheck", DOG, "c1") == []

    @pytest.mark.asyncio
    async def test_unavailable_index_returns_single_fallback(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        fake_es.unavailable = True
        patient = PatientContext(species="dog", reason="ear infection")

        results = await service.suggest(SoapField.ASSESSMENT, "otitis", patient, "c1")

        assert len(results) == 1
        (fallback,) = results
        assert fallback.source is SuggestionSource.FALLBACK
        assert fallback.text.strip()
        assert "{" not in fallback.text and "}" not in fallback.text
        assert "ear infection" in fallback.text

    @pytest.mark.asyncio
    async def test_server_error_returns_fallback(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        fake_es.status_override = 500

        results = await service.suggest(SoapField.PLAN, "recheck", None, "c1")

        assert [r.source for r in results] == [SuggestionSource.FALLBACK]

    @pytest.mark.asyncio
    async def test_missing_tenant_raises(self, service: SuggestionQueryService) -> None:
        with pytest.raises(MissingTenantError):
            await service.suggest(SoapField.PLAN, "recheck", DOG, "")

    @pytest.mark.asyncio
    async def test_invalid_field_raises(self, service: SuggestionQueryService) -> None:
        with pytest.raises(ValueError):
            await service.suggest("history", "recheck", DOG, "c1")


class TestTenantIsolation:
    """Documents written for one tenant never surface for another."""

    @pytest.mark.asyncio
    async def test_suggest_and_complete_are_scoped(
        self, service: SuggestionQueryService, indexing: IndexingService
    ) -> None:
        await indexing.index_field(SoapField.PLAN, "Recheck in two weeks", DOG, "clinic-a")

        assert await service.suggest(SoapField.PLAN, "recheck", DOG, "clinic-b") == []
        assert await service.complete_prefix("Rech", SoapField.PLAN, "clinic-b") == []

        hits = await service.suggest(SoapField.PLAN, "recheck", DOG, "clinic-a")
        assert [h.text for h in hits] == ["Recheck in two weeks"]


class TestPromptedSuggest:
    """use_prompt=True routes through the LLM service."""

    @pytest.mark.asyncio
    async def test_llm_suggestions(
        self, index_client: SuggestionIndexClient, fake_es: FakeElasticsearch
    ) -> None:
        llm = LLMService(api_key="mock")
        llm.suggest = AsyncMock(
            return_value=LLMResponse(lines=["BAR, T 101.5F", "Mild dehydration"])
        )
        service = SuggestionQueryService(index_client, llm=llm)

        results = await service.suggest(
            SoapField.OBJECTIVE, "bright alert", DOG, "c1", use_prompt=True
        )

        assert [r.text for r in results] == ["BAR, T 101.5F", "Mild dehydration"]
        assert all(r.source is SuggestionSource.OPENAI for r in results)
        assert fake_es.requests == []

    @pytest.mark.asyncio
    async def test_mocked_llm_falls_through_to_index(
        self, index_client: SuggestionIndexClient, indexing: IndexingService
    ) -> None:
        await indexing.index_field(SoapField.PLAN, "Recheck in two weeks", DOG, "c1")
        service = SuggestionQueryService(index_client, llm=LLMService(api_key="mock"))

        results = await service.suggest(
            SoapField.PLAN, "recheck", DOG, "c1", use_prompt=True
        )

        assert [r.source for r in results] == [SuggestionSource.ELASTICSEARCH]


# ---------------------------------------------------------------------------
# complete_prefix / autocomplete
# ---------------------------------------------------------------------------


class TestCompletePrefix:
    """SuggestionQueryService.complete_prefix."""

    @pytest.mark.asyncio
    async def test_completion_query_and_options(
        self,
        service: SuggestionQueryService,
        indexing: IndexingService,
        fake_es: FakeElasticsearch,
    ) -> None:
        await indexing.index_field(
            SoapField.PLAN, "Recheck in two weeks if signs persist", DOG, "c1"
        )
        await indexing.index_field(SoapField.SUBJECTIVE, "Recheck visit", DOG, "c1")

        results = await service.complete_prefix("Rech", SoapField.PLAN, "c1")

        assert [r.text for r in results] == ["Recheck in two weeks if"]
        (body,) = fake_es.search_bodies()
        completion = body["suggest"]["soap_completion"]["completion"]
        assert completion["field"] == "text_suggest"
        assert completion["fuzzy"] == {"fuzziness": 2}
        assert completion["skip_duplicates"] is True
        assert completion["contexts"] == {"tenant_id": ["c1"], "field": ["plan"]}

    @pytest.mark.asyncio
    async def test_short_prefix(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        assert await service.complete_prefix("Re", SoapField.PLAN, "c1") == []
        assert fake_es.requests == []

    @pytest.mark.asyncio
    async def test_unavailable_returns_empty(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        fake_es.unavailable = True
        assert await service.complete_prefix("Recheck", SoapField.PLAN, "c1") == []


class TestAutocomplete:
    """SuggestionQueryService.autocomplete."""

    @pytest.mark.asyncio
    async def test_best_hit(
        self, service: SuggestionQueryService, indexing: IndexingService
    ) -> None:
        await indexing.index_field(SoapField.PLAN, "Recheck in two weeks", DOG, "c1")

        best = await service.autocomplete(SoapField.PLAN, "recheck", DOG, "c1")

        assert best.text == "Recheck in two weeks"
        assert best.source is SuggestionSource.ELASTICSEARCH

    @pytest.mark.asyncio
    async def test_template_when_nothing_matches(
        self, service: SuggestionQueryService, fake_es: FakeElasticsearch
    ) -> None:
        fake_es.exists = True

        best = await service.autocomplete(SoapField.PLAN, "surgery", DOG, "c1")

        assert best.source is SuggestionSource.FALLBACK
        assert best.text.startswith("dog beagle, 4 age, male sex: ")
