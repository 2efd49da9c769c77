"""Shared pytest fixtures for the certificate share API."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import mongomock
import pytest

# Ensure the application package is importable during tests.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certshare import database, storage  # noqa: E402
from certshare.errors import RenderError  # noqa: E402

ORGANIZATIONS = {
    "cas": {
        "organizationName": "Collège des administrateurs de sociétés",
        "logo": "assets/cas/logo.svg",
        "favicon": "assets/cas/favicon.ico",
        "websiteUrl": "https://www.cas.ulaval.ca",
    },
    "acme": {
        "organizationName": "Acme Academy",
        "websiteUrl": "https://acme.example",
    },
}

VALID_QUERY = {
    "org": "acme",
    "pdf": "https://files.example/certs/ABC123.pdf",
    "formation": "Gouvernance 101",
    "certId": "ABC123",
    "prenom": "mARIE",
    "mois": "5",
    "annee": "2025",
}


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch: pytest.MonkeyPatch):
    """Provide an isolated in-memory MongoDB database for each test."""
    test_db_name = "test_certificate_share"
    monkeypatch.setenv("ENABLE_MONGODB", "true")
    monkeypatch.setenv("MONGODB_DATABASE", test_db_name)
    monkeypatch.setenv("COMPLETION_DELAY_MS", "0")

    client = mongomock.MongoClient()
    db = client[test_db_name]

    monkeypatch.setattr(database, "get_mongo_client", lambda: client)
    monkeypatch.setattr(database, "get_database", lambda: db)

    yield db

    client.drop_database(test_db_name)


@pytest.fixture
def memory_store(monkeypatch: pytest.MonkeyPatch):
    """Use the process-local dict instead of MongoDB."""
    monkeypatch.setenv("ENABLE_MONGODB", "false")
    storage.completion_records.clear()
    yield storage.completion_records
    storage.completion_records.clear()


@pytest.fixture
def org_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(ORGANIZATIONS), encoding="utf-8")
    monkeypatch.setenv("ORG_CONFIG_PATH", str(path))
    return path


@pytest.fixture
def certificate_pdf() -> bytes:
    """A one-page landscape A4 certificate."""
    from fpdf import FPDF

    pdf = FPDF(orientation="L", unit="pt", format="A4")
    pdf.add_page()
    pdf.set_font("Helvetica", size=28)
    pdf.cell(0, 60, "Certificate of completion")
    pdf.add_page()
    pdf.cell(0, 60, "Second page is never previewed")
    return bytes(pdf.output())


class FakeRenderer:
    """Renderer double recording calls instead of fetching documents."""

    def __init__(self, fail: bool = False, pdf_bytes: bytes = b"%PDF-1.4 fake") -> None:
        self.fail = fail
        self.pdf_bytes = pdf_bytes
        self.calls: List[Tuple[str, float]] = []

    def render(self, document_url: str, surface, scale: float) -> None:
        self.calls.append((document_url, scale))
        if self.fail:
            raise RenderError("document unreachable")
        surface.pdf_bytes = self.pdf_bytes
        surface.width = 842 * scale
        surface.height = 595 * scale


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def failing_renderer() -> FakeRenderer:
    return FakeRenderer(fail=True)


@pytest.fixture
def app(org_config_file, renderer):
    from certshare.main import create_app

    flask_app = create_app()
    flask_app.config.update(TESTING=True, PDF_RENDERER=renderer)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


def make_query(overrides: Optional[dict] = None, drop: Tuple[str, ...] = ()) -> dict:
    query = dict(VALID_QUERY)
    query.update(overrides or {})
    for key in drop:
        query.pop(key, None)
    return query
