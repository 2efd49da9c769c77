"""Page lifecycle of a certificate share session.

One call to ``start_session`` corresponds to one page load: resolve the
organization, validate the query parameters, build the view model, draw the
preview and restore the completion state. Clicks on the two sharing actions
are handled by ``CompletionTrigger`` one-shot tasks.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from certshare.errors import CertShareError, MissingParams, OrgMissing, OrgNotFound, RenderError
from certshare.services import completion_service, linkedin_service
from certshare.services.config_service import OrganizationConfig, branding_for, resolve_organization
from certshare.services.pdf_service import PREVIEW_SCALE, PdfRenderer, PreviewSurface, PypdfRenderer
from certshare.utils.clock import now_millis
from certshare.utils.params import (
    SessionParams,
    read_org_id,
    session_params_from_query,
    validate_params,
)

_LOGGER = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Cette page n'existe pas"
DEFAULT_GREETING = "Partagez votre réussite sur LinkedIn"
DEFAULT_COMPLETION_DELAY_MS = 100

# Public action name -> completion step.
STEP_ACTIONS = {"profile": "step1", "share": "step2"}


class SessionState(str, Enum):
    INIT = "init"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class SessionContext:
    """Everything a session knows about itself, fixed at startup."""

    org_id: str
    organization: OrganizationConfig
    params: SessionParams
    storage_key: str

    @property
    def organization_name(self) -> str:
        return self.organization.organization_name


@dataclass
class SessionOutcome:
    state: SessionState
    context: Optional[SessionContext] = None
    view: Dict[str, Any] = field(default_factory=dict)
    error: Optional[CertShareError] = None
    surface: Optional[PreviewSurface] = None

    @property
    def ready(self) -> bool:
        return self.state is SessionState.READY


def completion_delay_ms() -> int:
    try:
        return int(os.getenv("COMPLETION_DELAY_MS", DEFAULT_COMPLETION_DELAY_MS))
    except ValueError:
        return DEFAULT_COMPLETION_DELAY_MS


def build_context(
    query: Mapping[str, str],
    mapping: Optional[Mapping[str, Optional[OrganizationConfig]]],
) -> SessionContext:
    """
    Resolve the organization and validate the parameters of a session.

    Raises:
        OrgMissing, OrgNotFound: configuration could not be resolved
        MissingParams: a required parameter is absent
    """
    org_id = read_org_id(query)
    organization = resolve_organization(mapping, org_id)

    params = session_params_from_query(query)
    validate_params(params)

    return SessionContext(
        org_id=org_id or "",
        organization=organization,
        params=params,
        storage_key=completion_service.derive_storage_key(params, organization.organization_name),
    )


def display_name(first_name: Optional[str]) -> Optional[str]:
    """Capitalize the first letter and lowercase the rest."""
    if not first_name or not first_name.strip():
        return None
    name = first_name.strip()
    return name[0].upper() + name[1:].lower()


def greeting_view(first_name: Optional[str]) -> Dict[str, Any]:
    name = display_name(first_name)
    if name is None:
        return {"displayName": None, "greeting": DEFAULT_GREETING, "showSubtitle": False}
    return {"displayName": name, "greeting": f"Bonjour {name}!", "showSubtitle": True}


def render_preview(
    context: SessionContext,
    renderer: PdfRenderer,
    surface: PreviewSurface,
) -> Dict[str, Any]:
    """Draw the preview; a render failure only switches the preview to its fallback."""
    pdf_url = context.params.pdf_url
    try:
        renderer.render(pdf_url, surface, PREVIEW_SCALE)
    except RenderError:
        _LOGGER.exception("Certificate preview failed for %s", pdf_url)
        return {"mode": "fallback", "pdfUrl": pdf_url}

    return {
        "mode": "rendered",
        "pdfUrl": pdf_url,
        "width": surface.width,
        "height": surface.height,
    }


def completion_view(record: completion_service.CompletionRecord, now_ms: int) -> Dict[str, Any]:
    """Per-step done indicators and whether the progress banner stays visible."""
    return {
        "step1": {"done": record.step1.completed},
        "step2": {"done": record.step2.completed},
        "recentActivity": completion_service.has_recent_activity(record, now_ms),
        "showSteps": not completion_service.is_stale_session(record, now_ms),
    }


def _links_view(context: SessionContext) -> Dict[str, Any]:
    params = context.params
    default_message = linkedin_service.default_share_message(
        params.formation_name, context.organization_name
    )
    return {
        "profileAddUrl": linkedin_service.build_profile_add_url(
            org_name=context.organization_name,
            formation_name=params.formation_name,
            cert_id=params.cert_id,
            issue_year=params.issue_year,
            issue_month=params.issue_month,
            pdf_url=params.pdf_url,
        ),
        "defaultMessage": default_message,
        "charCount": linkedin_service.message_char_count(default_message),
    }


def start_session(
    query: Mapping[str, str],
    mapping: Optional[Mapping[str, Optional[OrganizationConfig]]],
    renderer: Optional[PdfRenderer] = None,
    now_ms: Optional[int] = None,
) -> SessionOutcome:
    """
    Run the page lifecycle for one request.

    Configuration and parameter failures end in the ERROR state with a single
    generic message; the actual cause is only logged.
    """
    try:
        context = build_context(query, mapping)
    except (OrgMissing, OrgNotFound, MissingParams) as exc:
        _LOGGER.warning("Certificate session rejected: %s", exc)
        return SessionOutcome(
            state=SessionState.ERROR,
            view={"error": GENERIC_ERROR_MESSAGE},
            error=exc,
        )

    surface = PreviewSurface()
    preview = render_preview(context, renderer or PypdfRenderer(), surface)

    record = completion_service.load_record(context.storage_key)
    current_ms = now_ms if now_ms is not None else now_millis()

    view: Dict[str, Any] = {
        "branding": branding_for(context.organization),
        "title": greeting_view(context.params.first_name),
        "certificate": {
            "certId": context.params.cert_id,
            "formationName": context.params.formation_name,
            "pdfUrl": context.params.pdf_url,
        },
        "preview": preview,
        "links": _links_view(context),
        "completion": completion_view(record, current_ms),
    }
    return SessionOutcome(
        state=SessionState.READY,
        context=context,
        view=view,
        surface=surface if surface.drawn else None,
    )


class CompletionTrigger:
    """One-shot task marking a step completed shortly after the user clicks.

    The delay lets the browser start following the outbound link before the
    state changes. Firing is idempotent apart from refreshing the timestamp.
    """

    def __init__(self, context: SessionContext, step: str, delay_ms: Optional[int] = None) -> None:
        if step not in completion_service.STEPS:
            raise ValueError(f"Unknown step {step!r}")
        self.context = context
        self.step = step
        self.delay_ms = completion_delay_ms() if delay_ms is None else delay_ms

    def _complete(self) -> None:
        completion_service.save_step(self.context.storage_key, self.step, True)

    def fire(self) -> Optional[threading.Timer]:
        """Schedule the transition; runs inline when there is no delay."""
        if self.delay_ms <= 0:
            self._complete()
            return None

        timer = threading.Timer(self.delay_ms / 1000.0, self._complete)
        timer.daemon = True
        timer.start()
        return timer


def trigger_for_action(context: SessionContext, action: str, delay_ms: Optional[int] = None) -> CompletionTrigger:
    """Return the trigger behind a public action name ("profile" or "share")."""
    try:
        step = STEP_ACTIONS[action]
    except KeyError:
        raise ValueError(f"Unknown action {action!r}") from None
    return CompletionTrigger(context, step, delay_ms)


def share_action(
    context: SessionContext,
    message: Optional[str],
    delay_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Handle a click on "share": build the URL from the text as edited now and
    schedule the step2 completion.
    """
    if message is None:
        message = linkedin_service.default_share_message(
            context.params.formation_name, context.organization_name
        )

    share_url = linkedin_service.build_share_url(message, context.params.pdf_url)
    CompletionTrigger(context, "step2", delay_ms).fire()
    return {
        "shareUrl": share_url,
        "charCount": linkedin_service.message_char_count(message),
    }
