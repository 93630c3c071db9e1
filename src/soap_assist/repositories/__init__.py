"""Repositories package."""

from soap_assist.repositories.records import RecordRepository, record_repository

__all__ = [
    "RecordRepository",
    "record_repository",
]
