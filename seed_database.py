#!/usr/bin/env python
"""
Seed database with sample licenses and inductions.

Due dates are relative to today so the dashboard always shows a mix of
active, expiring, expired, scheduled, in‑progress and overdue records.
"""

import json
from datetime import date, timedelta

from vigil.errors import ValidationError
from vigil.lifecycle import LifecycleController
from vigil.models import ComplianceRecord, RecordKind
from vigil.registry_db import DBRecordStore

TODAY = date.today()

# Sample records covering every derived status
SAMPLE_RECORDS = [
    ComplianceRecord(
        id="lic-forklift-ford",
        subject_id="emp-100",
        subject_name="Stephen Ford",
        department="Operations",
        kind=RecordKind.LICENSE,
        label="Forklift Licence",
        issue_date=TODAY - timedelta(days=700),
        due_date=TODAY + timedelta(days=5),
        authority_notes="WorkSafe high-risk work licence",
    ),
    ComplianceRecord(
        id="lic-firstaid-davis",
        subject_id="emp-101",
        subject_name="Emma Davis",
        department="Operations",
        kind=RecordKind.LICENSE,
        label="First Aid Certificate",
        issue_date=TODAY - timedelta(days=1100),
        due_date=TODAY - timedelta(days=2),
    ),
    ComplianceRecord(
        id="lic-electrical-rodriguez",
        subject_id="emp-102",
        subject_name="Mike Rodriguez",
        department="Installation",
        kind=RecordKind.LICENSE,
        label="Electrical Licence",
        issue_date=TODAY - timedelta(days=200),
        due_date=TODAY + timedelta(days=500),
    ),
    ComplianceRecord(
        id="ind-safety-davis",
        subject_id="emp-101",
        subject_name="Emma Davis",
        department="Operations",
        kind=RecordKind.INDUCTION,
        label="Safety Induction",
        description="Workplace Safety & Protocols",
        scheduled_date=TODAY - timedelta(days=7),
        due_date=TODAY - timedelta(days=5),
        progress=25,
    ),
    ComplianceRecord(
        id="ind-technical-rodriguez",
        subject_id="emp-102",
        subject_name="Mike Rodriguez",
        department="Installation",
        kind=RecordKind.INDUCTION,
        label="Technical Training",
        description="Solar installation standards",
        scheduled_date=TODAY,
        due_date=TODAY + timedelta(days=4),
        progress=50,
    ),
    ComplianceRecord(
        id="ind-onboarding-chen",
        subject_id="emp-103",
        subject_name="Elizabeth Chen",
        department="Sales",
        kind=RecordKind.INDUCTION,
        label="Company Onboarding",
        description="Policies, systems and culture",
        scheduled_date=TODAY + timedelta(days=3),
        due_date=TODAY + timedelta(days=14),
    ),
]

# Add additional records from sample_records.json if available
try:
    with open("sample_records.json", "r") as f:
        sample_data = json.load(f)

    for data in sample_data:
        SAMPLE_RECORDS.append(
            ComplianceRecord(
                id=data["id"],
                subject_id=data["subjectId"],
                subject_name=data.get("subjectName", ""),
                department=data.get("department"),
                kind=RecordKind(data["kind"]),
                label=data["label"],
                description=data.get("description", ""),
                issue_date=data.get("issueDate"),
                scheduled_date=data.get("scheduledDate"),
                due_date=data["dueDate"],
                progress=int(data.get("progress", 0)),
            )
        )
except (FileNotFoundError, json.JSONDecodeError):
    # Continue with default sample records
    pass


def seed_database():
    """Add sample records to the database through the lifecycle controller."""
    controller = LifecycleController(DBRecordStore())

    added = 0
    for record in SAMPLE_RECORDS:
        try:
            result = controller.create(record)
        except ValidationError as e:
            print(f"Skipped: {record.id} ({e})")
            continue
        added += 1
        print(f"Added: {record.label} for {record.subject_name} ({result.status.name})")

    print(f"\nAdded {added} records to the database!")


if __name__ == "__main__":
    # Initialize DB if needed
    from vigil.db import create_all
    print("Ensuring database tables exist...")
    create_all()

    # Seed the database
    print("Seeding database with sample records...")
    seed_database()

    print("\nDone! You can now run the API server with:")
    print("uvicorn api.main:app --reload --port 8000")
