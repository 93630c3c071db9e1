#!/usr/bin/env python3
"""
Seed Sample SOAP Notes

Posts a handful of realistic SOAP notes to a running API so that the
suggestion endpoints have something to match against.

Usage:
    python scripts/seed_soap_notes.py
    python scripts/seed_soap_notes.py --tenant clinic-demo --api-url http://localhost:8000
"""

from __future__ import annotations

import argparse
import sys
import time

import httpx

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_TENANT = "demo-clinic"
TIMEOUT = 10.0

SAMPLE_NOTES = [
    {
        "patient": {"species": "dog", "breed": "golden retriever", "age": 3, "sex": "male"},
        "subjective": (
            "Owner reports excessive ear scratching for 3 days with head shaking "
            "and a foul odor from both ears. No previous history of ear problems."
        ),
        "objective": (
            "Bilateral otitis externa with erythematous ear canals and brownish "
            "discharge. T 101.8F, HR 120 bpm, RR 20 rpm. Alert and responsive."
        ),
        "assessment": (
            "Probable bacterial otitis externa with possible yeast overgrowth. "
            "Rule out underlying allergies."
        ),
        "plan": (
            "Ear cytology to confirm. Ear cleaner BID for 7 days, then enrofloxacin "
            "drops TID for 10 days. Recheck in 2 weeks."
        ),
    },
    {
        "patient": {"species": "cat", "breed": "domestic shorthair", "age": 2, "sex": "female"},
        "subjective": (
            "Decreased appetite and lethargy for 2 days. Owner reports occasional "
            "vomiting and hiding. No known toxin exposure."
        ),
        "objective": (
            "Depressed and dehydrated. T 103.2F, HR 160 bpm. Mild discomfort on "
            "abdominal palpation. MM pale pink, CRT 2 sec."
        ),
        "assessment": (
            "Suspected gastroenteritis with dehydration. Differentials include "
            "pancreatitis and foreign body obstruction."
        ),
        "plan": (
            "IV fluid therapy and monitoring. Start anti-emetic. Blood work and "
            "abdominal radiographs. NPO 24 hours, then bland diet."
        ),
    },
    {
        "patient": {"species": "dog", "breed": "german shepherd", "age": 9, "sex": "male"},
        "subjective": (
            "Acute lameness in the right hind limb after running in the yard. "
            "No known trauma observed."
        ),
        "objective": (
            "Non-weight bearing on right hind limb. Pain and swelling of the stifle. "
            "Cranial drawer test positive."
        ),
        "assessment": "Probable cranial cruciate ligament rupture.",
        "plan": (
            "Stifle radiographs. Carprofen for pain and strict exercise restriction. "
            "Refer for surgical evaluation. Follow up in 1 week."
        ),
    },
    {
        "patient": {"species": "cat", "breed": "persian", "age": 0.5, "sex": "female"},
        "subjective": "Sneezing and nasal discharge for 1 week, less active and eating less.",
        "objective": "Serous nasal discharge, occasional sneezing. T 102.1F, mild gingivitis.",
        "assessment": "Suspected viral upper respiratory infection.",
        "plan": (
            "Supportive care with humidity and nasal saline. Doxycycline for "
            "secondary infection. Recheck in 1 week if not improving."
        ),
    },
]


def log_info(msg: str) -> None:
    print(f"ℹ {msg}")


def log_success(msg: str) -> None:
    print(f"✓ {msg}")


def log_error(msg: str) -> None:
    print(f"✗ {msg}")


def check_api(api_url: str) -> bool:
    try:
        r = httpx.get(f"{api_url}/health", timeout=5.0)
        return r.status_code == 200
    except httpx.RequestError:
        return False


def seed_note(api_url: str, tenant_id: str, note: dict) -> bool:
    """Queue one note for indexing."""
    try:
        r = httpx.post(
            f"{api_url}/api/v1/soap/index",
            json=note,
            headers={"X-Tenant-ID": tenant_id},
            timeout=TIMEOUT,
        )
    except httpx.RequestError as e:
        log_error(f"Request failed: {e}")
        return False

    if r.status_code == 202:
        fields = ", ".join(r.json().get("fields", []))
        log_success(f"Queued {note['patient']['species']} note ({fields})")
        return True

    log_error(f"Failed: {r.status_code} - {r.text}")
    return False


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed sample SOAP notes")
    parser.add_argument("--api-url", default=DEFAULT_API_URL, help="API base URL")
    parser.add_argument("--tenant", default=DEFAULT_TENANT, help="Tenant id header")
    parser.add_argument(
        "--wait", type=int, default=2, help="Seconds to wait for background indexing"
    )
    args = parser.parse_args()

    print("\nSOAP Assist Note Seeder\n")

    if not check_api(args.api_url):
        log_error(f"API not healthy at {args.api_url}")
        return 1
    log_success("API connected")

    success = sum(seed_note(args.api_url, args.tenant, note) for note in SAMPLE_NOTES)
    print()

    if success != len(SAMPLE_NOTES):
        log_error(f"Seeded {success}/{len(SAMPLE_NOTES)} notes")
        return 1

    log_success(f"Seeded {success}/{len(SAMPLE_NOTES)} notes for tenant '{args.tenant}'")
    if args.wait > 0:
        log_info(f"Waiting {args.wait}s for background indexing...")
        time.sleep(args.wait)
    return 0


if __name__ == "__main__":
    sys.exit(main())
