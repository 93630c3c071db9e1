"""
API Dependencies

FastAPI dependency providers shared by the v1 routers. Tests replace them
through ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, Request

from soap_assist.core.config import settings
from soap_assist.core.database import get_session_factory
from soap_assist.core.exceptions import MissingTenantError
from soap_assist.services.index_client import SuggestionIndexClient, get_index_client
from soap_assist.services.indexing import IndexingService
from soap_assist.services.llm import LLMService, llm_service
from soap_assist.services.patients import PatientResolver
from soap_assist.services.suggestions import SuggestionQueryService


def get_tenant_id(request: Request) -> str:
    """
    Read the tenant from the configured header.

    Raises:
        MissingTenantError: Header absent or blank (rendered as 400).
    """
    tenant_id = request.headers.get(settings.TENANT_HEADER, "").strip()
    if not tenant_id:
        raise MissingTenantError()
    return tenant_id


def get_search_index() -> SuggestionIndexClient:
    """FastAPI dependency: returns the shared index client."""
    return get_index_client()


def get_llm_service() -> LLMService:
    """FastAPI dependency: returns the shared LLMService."""
    return llm_service


def get_query_service(
    client: SuggestionIndexClient = Depends(get_search_index),
    llm: LLMService = Depends(get_llm_service),
) -> SuggestionQueryService:
    """FastAPI dependency: returns a SuggestionQueryService instance."""
    return SuggestionQueryService(client, llm=llm)


def get_indexing_service(
    client: SuggestionIndexClient = Depends(get_search_index),
) -> IndexingService:
    """FastAPI dependency: returns an IndexingService instance."""
    return IndexingService(client)


def get_patient_resolver() -> PatientResolver:
    """FastAPI dependency: returns a PatientResolver over the record store."""
    return PatientResolver(get_session_factory())
