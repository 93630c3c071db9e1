#!/usr/bin/env python3
"""
Reindex SOAP Notes

Rebuilds the suggestion index from the record store: creates the index if
needed, bulk-indexes every saved SOAP note with its pet context and prints
the resulting index statistics.

Usage:
    Requires Postgres and Elasticsearch running:
    $ python scripts/reindex_soap_notes.py
    $ python scripts/reindex_soap_notes.py --clean            # Drop the index first
    $ python scripts/reindex_soap_notes.py --tenant clinic-1  # One clinic only
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Required for direct script execution without package installation
sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from soap_assist.core.database import dispose_engine, get_session_factory
from soap_assist.core.exceptions import SuggestionIndexError
from soap_assist.core.logging import setup_logging
from soap_assist.models.orm import MedicalRecord
from soap_assist.models.schemas import PatientContext, SoapNote
from soap_assist.repositories.records import record_repository
from soap_assist.services.index_client import SuggestionIndexClient
from soap_assist.services.indexing import IndexEntry, IndexingService
from soap_assist.services.patients import context_from_pet

BATCH_SIZE = 200


def record_entries(
    record: MedicalRecord, patient: PatientContext, note: SoapNote
) -> list[IndexEntry]:
    """Index entries for one record, stamped with its visit date."""
    return [
        IndexEntry(
            field,
            text,
            patient,
            record.tenant_id,
            veterinarian_id=record.veterinarian,
            created_at=record.visit_date or record.created_at,
        )
        for field, text in note.sections()
    ]


async def reindex(clean: bool, tenant_id: str | None) -> int:
    """
    Walk the medical records and index their sections in batches.

    Returns:
        Process exit code.
    """
    client = SuggestionIndexClient(refresh="wait_for")
    indexing = IndexingService(client)
    try:
        if clean:
            await client.delete_index()
            print(f"Dropped index '{client.index}'")
        if await client.ensure_index():
            print(f"Created index '{client.index}'")

        records = 0
        submitted = 0
        batch: list[IndexEntry] = []
        async with get_session_factory()() as session:
            async for record in record_repository.iter_records(session, tenant_id):
                records += 1
                patient = context_from_pet(record.pet)
                note = SoapNote(
                    subjective=record.subjective,
                    objective=record.objective,
                    assessment=record.assessment,
                    plan=record.plan,
                )
                batch.extend(record_entries(record, patient, note))
                if len(batch) >= BATCH_SIZE:
                    submitted += await indexing.bulk_index(batch)
                    batch = []
        if batch:
            submitted += await indexing.bulk_index(batch)

        print(f"Indexed {submitted} SOAP fields from {records} medical records")

        stats = await client.index_stats()
        if stats:
            total = stats.get("indices", {}).get(client.index, {}).get("total", {})
            print("Index statistics:")
            print(f"   Total documents: {total.get('docs', {}).get('count', 0)}")
            size_kb = round(total.get("store", {}).get("size_in_bytes", 0) / 1024)
            print(f"   Index size: {size_kb} KB")
        return 0
    except SuggestionIndexError as e:
        print(f"Reindex failed: {e}")
        return 1
    finally:
        await client.aclose()
        await dispose_engine()


def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild the SOAP suggestion index")
    parser.add_argument("--clean", action="store_true", help="Drop the index first")
    parser.add_argument("--tenant", default=None, help="Only reindex one tenant")
    args = parser.parse_args()

    setup_logging()
    return asyncio.run(reindex(args.clean, args.tenant))


if __name__ == "__main__":
    sys.exit(main())
