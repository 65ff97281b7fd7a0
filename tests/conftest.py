"""Pytest configuration and shared fixtures for Evidence Triage tests."""

import csv
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import openpyxl
import pytest

from evidence_triage.core.database import get_engine, init_db
from evidence_triage.core.store import CaseStore, EvidenceStore
from evidence_triage.models import EvidenceType, NormalizedEvidence

CASE_ID = "CASE-TEST-001"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def engine(temp_dir):
    """File-backed SQLite engine so that job threads see committed data."""
    engine = get_engine(str(temp_dir / "triage.db"))
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def case(engine):
    """A freshly created case."""
    return CaseStore(engine).create(
        case_name="Operation Test",
        case_id=CASE_ID,
        investigator="Det. Example",
    )


@pytest.fixture
def evidence_store(engine):
    return EvidenceStore(engine)


@pytest.fixture
def make_evidence():
    """Factory for NormalizedEvidence with message defaults."""
    def _make(case_id=CASE_ID, **overrides):
        values = {
            "case_id": case_id,
            "type": EvidenceType.MESSAGE,
            "source": "WhatsApp",
            "timestamp": datetime(2024, 1, 15, 10, 30),
            "sender": "+15550001",
            "receiver": "+15550002",
            "content": "hello",
        }
        values.update(overrides)
        return NormalizedEvidence(**values)

    return _make


@pytest.fixture
def seeded_case(case, evidence_store, make_evidence):
    """Case holding 25 unscored messages, one minute apart."""
    start = datetime(2024, 1, 15, 9, 0)
    records = [
        make_evidence(content=f"message {i}", timestamp=start + timedelta(minutes=i))
        for i in range(25)
    ]
    evidence_store.bulk_insert(records)
    return case


def _write_csv(path: Path, header: list, rows: list) -> Path:
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
    return path


@pytest.fixture
def sample_csv(temp_dir):
    """Mixed message/call export in the shape of a typical extraction tool."""
    return _write_csv(
        temp_dir / "export.csv",
        ["Timestamp", "Sender", "Receiver", "Body", "Source", "Duration"],
        [
            ["2024-01-15 10:30:00", "+15550001", "+15550002", "Got the weed ready for pickup", "WhatsApp", ""],
            ["2024-01-15 11:00:00", "+15550002", "+15550001", "", "Phone", "120"],
            ["2024-01-16 23:45:00", "+15550001", "+15550003", "see you tomorrow", "SMS", ""],
        ],
    )


@pytest.fixture
def contacts_csv(temp_dir):
    """Address book export."""
    return _write_csv(
        temp_dir / "contacts.csv",
        ["Name", "Phone", "Email", "Company"],
        [
            ["Alice Smith", "555-0100", "alice@example.com", "Acme"],
            ["Bob Jones", "555-0101", "", ""],
        ],
    )


@pytest.fixture
def large_csv(temp_dir):
    """250 message rows for progress reporting."""
    return _write_csv(
        temp_dir / "large.csv",
        ["Date", "From", "To", "Message"],
        [
            [f"2024-02-01 10:{i % 60:02d}:00", "+15550001", "+15550002", f"row {i}"]
            for i in range(250)
        ],
    )


@pytest.fixture
def sample_xlsx(temp_dir):
    """Workbook with a message sheet, a call sheet and a header-only sheet."""
    path = temp_dir / "export.xlsx"
    workbook = openpyxl.Workbook()

    messages = workbook.active
    messages.title = "Messages"
    messages.append(["Timestamp", "Sender", "Receiver", "Message", "App"])
    messages.append([datetime(2024, 3, 1, 9, 15), "Alice", "Bob", "meet at the usual place", "Signal"])
    messages.append([None, None, None, None, None])
    messages.append([datetime(2024, 3, 1, 9, 20), "Bob", "Alice", "ok", "Signal"])

    calls = workbook.create_sheet("Calls")
    calls.append(["Date", "Caller", "Duration"])
    calls.append([datetime(2024, 3, 2, 14, 0), 15550001, 95])

    notes = workbook.create_sheet("Notes")
    notes.append(["Comment"])

    workbook.save(path)
    return path
