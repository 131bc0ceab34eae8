"""Shared fixtures: in-memory export archives and a migrated document store."""

import csv
import io
import zipfile
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import pytest

from linkedin_vault.config import VaultConfig
from linkedin_vault.lifecycle.database import DatabaseConnection
from linkedin_vault.lifecycle.migrations import MigrationRunner
from linkedin_vault.lifecycle.storage import LocalObjectStore

EXPORT_DIR = "Basic_LinkedInDataExport_01-15-2024"

CONNECTION_HEADER = ["First Name", "Last Name", "URL", "Email Address", "Company", "Position", "Connected On"]


def make_zip(files: Dict[str, bytes | str]) -> bytes:
    """Build a ZIP archive in memory from member name -> content."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def to_csv(header: List[str], rows: Iterable[Iterable[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def connections_csv(rows: Iterable[Iterable[str]]) -> str:
    return to_csv(CONNECTION_HEADER, rows)


def export_archive(
    connections: Optional[List[List[str]]] = None,
    extra: Optional[Dict[str, str]] = None,
) -> bytes:
    """A small realistic export with profile, positions and skills."""
    if connections is None:
        connections = [
            ["Ada", "Lovelace", "https://www.linkedin.com/in/ada", "", "Acme", "Engineer", "15 Jan 2023"],
            ["Alan", "Turing", "https://www.linkedin.com/in/alan", "", "Acme", "Researcher", "02 Feb 2023"],
            ["Grace", "Hopper", "https://www.linkedin.com/in/grace", "", "Navy", "Admiral", "20 Feb 2023"],
        ]
    files = {
        f"{EXPORT_DIR}/Connections.csv": connections_csv(connections),
        f"{EXPORT_DIR}/Profile.csv": to_csv(
            ["First Name", "Last Name", "Headline", "Summary", "Industry", "Geo Location"],
            [["Jo", "Doe", "Engineer at Acme", "I build things", "Software", "Berlin"]],
        ),
        f"{EXPORT_DIR}/Positions.csv": to_csv(
            ["Company Name", "Title", "Description", "Location", "Started On", "Finished On"],
            [["Acme", "Engineer", "Builds", "Berlin", "Mar 2020", ""]],
        ),
        f"{EXPORT_DIR}/Skills.csv": to_csv(["Name"], [["Python"], ["SQL"]]),
    }
    files.update(extra or {})
    return make_zip(files)


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def config(tmp_path):
    """Default configuration with stores under tmp_path."""
    return VaultConfig(storage={
        "object_store_path": str(tmp_path / "objects"),
        "database_path": str(tmp_path / "vault.db"),
    })


@pytest.fixture
def db():
    """Migrated in-memory document store."""
    connection = DatabaseConnection(":memory:")
    MigrationRunner(connection).apply_migrations()
    yield connection
    connection.close()


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(tmp_path / "objects")
