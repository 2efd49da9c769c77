"""LinkedIn link builders for the two sharing steps.

Every function here is pure: the same arguments always give the same string
and nothing touches the network or the completion store.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, quote_plus, urlencode

PROFILE_ADD_BASE_URL = "https://www.linkedin.com/profile/add"
SHARE_BASE_URL = "https://www.linkedin.com/feed/?shareActive=true"
CERTIFICATION_TASK = "CERTIFICATION_NAME"

# Image referenced at the end of every shared post that comes with a PDF.
CERTIFICATE_IMAGE_URL = (
    "https://raw.githubusercontent.com/grindghost/partage-attestation-linkedin/"
    "refs/heads/main/src/assets/certificat.png"
)

MESSAGE_MAX_LENGTH = 3000
MESSAGE_WARNING_THRESHOLD = 100

# Characters encodeURIComponent leaves untouched on top of alphanumerics and "_.-".
_URI_COMPONENT_SAFE = "!~*'()"


def _form_quote(value: str, safe: str = "", encoding: Optional[str] = None, errors: Optional[str] = None) -> str:
    """Form-encode like a browser URLSearchParams: "*" stays literal, "~" is escaped."""
    return quote_plus(value, safe="*", encoding=encoding, errors=errors).replace("~", "%7E")


def build_profile_add_url(
    org_name: Optional[str],
    formation_name: Optional[str],
    cert_id: Optional[str],
    issue_year: Optional[str],
    issue_month: Optional[str],
    pdf_url: Optional[str],
) -> str:
    """
    Build the "Add to profile" URL for a certification.

    Empty fields are left out; the issue month is padded to two digits and
    the certification task marker is always present.
    """
    params: List[Tuple[str, str]] = []
    if org_name:
        params.append(("organizationName", org_name))
    if formation_name:
        params.append(("name", formation_name))
    if cert_id:
        params.append(("certId", cert_id))
    if issue_year:
        params.append(("issueYear", issue_year))
    if issue_month:
        params.append(("issueMonth", issue_month.rjust(2, "0")))
    if pdf_url:
        params.append(("certUrl", pdf_url))
    params.append(("startTask", CERTIFICATION_TASK))

    return f"{PROFILE_ADD_BASE_URL}?{urlencode(params, quote_via=_form_quote)}"


def default_share_message(formation_name: Optional[str], org_name: Optional[str]) -> str:
    """Return the post text offered before the user edits it."""
    return (
        f"Félicitations à moi! J'ai complété la formation « {formation_name} » 🎓\n"
        f"\n"
        f"Merci à {org_name} pour cette expérience enrichissante."
    )


def build_share_url(message: str, pdf_url: Optional[str]) -> str:
    """
    Build the feed URL that opens LinkedIn's post composer prefilled.

    When a document URL is present a fixed reference line pointing at the
    certificate image is appended; the document URL itself is not included.
    """
    final_message = message
    if pdf_url:
        final_message = f"{message}\n\n{CERTIFICATE_IMAGE_URL}"

    encoded = quote(final_message, safe=_URI_COMPONENT_SAFE)
    return f"{SHARE_BASE_URL}&text={encoded}"


def message_char_count(message: str, max_length: int = MESSAGE_MAX_LENGTH) -> Dict[str, Any]:
    """
    Character counter state shown under the message editor.

    Lengths are counted in UTF-16 code units, the way the browser editor
    counts them, so an emoji outside the BMP counts as two.
    """
    current = len(message.encode("utf-16-le")) // 2
    remaining = max_length - current
    return {
        "current": current,
        "max": max_length,
        "remaining": remaining,
        "warning": remaining < MESSAGE_WARNING_THRESHOLD,
        "error": remaining < 0,
    }
