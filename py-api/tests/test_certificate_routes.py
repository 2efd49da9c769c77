"""Tests for the /api/certificate endpoints."""

from __future__ import annotations

import json

from certshare.services import completion_service
from certshare.services.session_service import GENERIC_ERROR_MESSAGE

from conftest import FakeRenderer, VALID_QUERY, make_query

KEY = "cert_completion_ABC123"


def test_index(client):
    response = client.get("/")
    assert response.status_code == 200


def test_certificate_page(client):
    response = client.get("/api/certificate", query_string=VALID_QUERY)

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["branding"]["organizationName"] == "Acme Academy"
    assert payload["title"]["greeting"] == "Bonjour Marie!"
    assert payload["preview"]["mode"] == "rendered"
    assert payload["links"]["profileAddUrl"].startswith("https://www.linkedin.com/profile/add?")


def test_invalid_links_get_the_same_generic_404(client):
    responses = [
        client.get("/api/certificate", query_string=make_query(drop=("org",))),
        client.get("/api/certificate", query_string=make_query({"org": "ghost"})),
        client.get("/api/certificate", query_string=make_query(drop=("pdf",))),
        client.get("/api/certificate", query_string=make_query(drop=("certId",))),
    ]

    for response in responses:
        assert response.status_code == 404
        assert response.get_json() == {"error": GENERIC_ERROR_MESSAGE}


def test_missing_configuration_file_gives_generic_404(client, monkeypatch, tmp_path):
    monkeypatch.setenv("ORG_CONFIG_PATH", str(tmp_path / "absent.json"))

    response = client.get("/api/certificate", query_string=VALID_QUERY)

    assert response.status_code == 404
    assert response.get_json() == {"error": GENERIC_ERROR_MESSAGE}


def test_render_failure_keeps_page_available(app, client):
    app.config["PDF_RENDERER"] = FakeRenderer(fail=True)

    response = client.get("/api/certificate", query_string=VALID_QUERY)

    assert response.status_code == 200
    assert response.get_json()["preview"] == {"mode": "fallback", "pdfUrl": VALID_QUERY["pdf"]}


def test_preview_returns_pdf(client, renderer):
    response = client.get("/api/certificate/preview", query_string=VALID_QUERY)

    assert response.status_code == 200
    assert response.mimetype == "application/pdf"
    assert response.data == renderer.pdf_bytes


def test_preview_unavailable(app, client):
    app.config["PDF_RENDERER"] = FakeRenderer(fail=True)

    response = client.get("/api/certificate/preview", query_string=VALID_QUERY)

    assert response.status_code == 502
    assert response.get_json() == {"error": "preview_unavailable", "pdfUrl": VALID_QUERY["pdf"]}


def test_preview_invalid_link(client):
    response = client.get("/api/certificate/preview", query_string=make_query(drop=("pdf",)))
    assert response.status_code == 404


def test_profile_click_completes_step1(client, mongo_db):
    response = client.post("/api/certificate/steps/profile", query_string=VALID_QUERY)

    assert response.status_code == 202
    assert response.get_json() == {"step": "step1", "scheduled": True}
    stored = json.loads(mongo_db.completion_records.find_one({"key": KEY})["value"])
    assert stored["step1"]["completed"] is True
    assert stored["step2"]["completed"] is False


def test_completed_steps_show_on_reload(client):
    client.post("/api/certificate/steps/profile", query_string=VALID_QUERY)
    client.post("/api/certificate/steps/share", query_string=VALID_QUERY)

    completion = client.get("/api/certificate", query_string=VALID_QUERY).get_json()["completion"]

    assert completion["step1"] == {"done": True}
    assert completion["step2"] == {"done": True}
    assert completion["showSteps"] is True


def test_unknown_step(client):
    response = client.post("/api/certificate/steps/like", query_string=VALID_QUERY)
    assert response.status_code == 404


def test_step_click_with_invalid_link(client):
    response = client.post("/api/certificate/steps/profile", query_string=make_query({"org": "ghost"}))

    assert response.status_code == 404
    assert response.get_json() == {"error": GENERIC_ERROR_MESSAGE}
    assert completion_service.load_record(KEY).step1.completed is False


def test_share_uses_submitted_message(client):
    response = client.post(
        "/api/certificate/share",
        query_string=VALID_QUERY,
        json={"message": "Fier de ce parcours"},
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["shareUrl"].startswith(
        "https://www.linkedin.com/feed/?shareActive=true&text=Fier%20de%20ce%20parcours%0A%0A"
    )
    assert payload["charCount"]["current"] == len("Fier de ce parcours")
    assert completion_service.load_record(KEY).step2.completed is True


def test_share_without_body_uses_default_message(client):
    response = client.post("/api/certificate/share", query_string=VALID_QUERY)

    assert response.status_code == 200
    assert "F%C3%A9licitations" in response.get_json()["shareUrl"]


def test_share_rejects_non_string_message(client):
    response = client.post("/api/certificate/share", query_string=VALID_QUERY, json={"message": 42})
    assert response.status_code == 400


def test_share_rejects_non_object_body(client):
    for body in (["Fier de ce parcours"], "Fier de ce parcours", 7):
        response = client.post("/api/certificate/share", query_string=VALID_QUERY, json=body)
        assert response.status_code == 400
        assert "error" in response.get_json()
