"""/api/certificate routes backing the certificate share page."""

from __future__ import annotations

from io import BytesIO
from typing import Any

from flask import Blueprint, current_app, jsonify, request, send_file

from certshare.errors import MissingParams, OrgMissing, OrgNotFound
from certshare.services import session_service
from certshare.services.config_service import load_organization_mapping
from certshare.services.session_service import GENERIC_ERROR_MESSAGE, SessionOutcome

bp = Blueprint("certificates", __name__, url_prefix="/api/certificate")


def _renderer():
    """Renderer used for previews; tests override it through app.config."""
    return current_app.config.get("PDF_RENDERER")


def _start() -> SessionOutcome:
    mapping = load_organization_mapping()
    return session_service.start_session(request.args, mapping, renderer=_renderer())


def _context_or_error():
    """Resolve the session context without drawing the preview."""
    try:
        return session_service.build_context(request.args, load_organization_mapping()), None
    except (OrgMissing, OrgNotFound, MissingParams) as exc:
        current_app.logger.warning(f"Rejected certificate action: {exc}")
        return None, (jsonify(error=GENERIC_ERROR_MESSAGE), 404)


@bp.get("")
def get_certificate_page():
    """Return the view model of the share page for the given query string."""
    outcome = _start()
    if not outcome.ready:
        return jsonify(outcome.view), 404
    return jsonify(outcome.view), 200


@bp.get("/preview")
def get_certificate_preview():
    """Return page 1 of the certificate as a standalone PDF."""
    outcome = _start()
    if not outcome.ready:
        return jsonify(outcome.view), 404

    if outcome.surface is None:
        return jsonify(error="preview_unavailable", pdfUrl=outcome.context.params.pdf_url), 502

    buffer = BytesIO(outcome.surface.pdf_bytes)
    buffer.seek(0)
    return send_file(
        buffer,
        mimetype="application/pdf",
        as_attachment=False,
        download_name=f"certificate-{outcome.context.params.cert_id}.pdf",
    )


@bp.post("/steps/<action>")
def complete_step(action: str):
    """Record a click on "add to profile" (profile) or "share" (share)."""
    if action not in session_service.STEP_ACTIONS:
        return jsonify(error="Unknown step."), 404

    context, error_response = _context_or_error()
    if error_response is not None:
        return error_response

    trigger = session_service.trigger_for_action(context, action)
    trigger.fire()
    return jsonify(step=trigger.step, scheduled=True), 202


@bp.post("/share")
def share_certificate():
    """Build the share URL from the message as currently edited."""
    context, error_response = _context_or_error()
    if error_response is not None:
        return error_response

    payload: Any = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify(error="Request body must be a JSON object."), 400

    message = payload.get("message")
    if message is not None and not isinstance(message, str):
        return jsonify(error="message must be a string."), 400

    result = session_service.share_action(context, message)
    return jsonify(result), 200
