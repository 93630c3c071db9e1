"""
Exception Taxonomy

Errors raised by the suggestion subsystem. Only ``IndexRequestError`` and
unexpected failures ever reach a client as 5xx; unavailability of the index
is absorbed by the template fallback and write failures are logged.
"""

from __future__ import annotations


class SoapAssistError(Exception):
    """Base class for all service errors."""


class SuggestionIndexError(SoapAssistError):
    """Any failure talking to the search index."""


class IndexUnavailableError(SuggestionIndexError):
    """Connection error, timeout or 5xx from the search engine."""


class IndexRequestError(SuggestionIndexError):
    """The search engine rejected a request (4xx other than a missing index)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Index request failed ({status_code}): {message}")
        self.status_code = status_code


class MissingTenantError(SoapAssistError, ValueError):
    """A read or write was attempted without a tenant id."""

    def __init__(self) -> None:
        super().__init__("A tenant id is required for every index operation")
