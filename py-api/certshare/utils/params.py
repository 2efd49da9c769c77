"""Query-string parsing and validation for a certificate session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional

from certshare.errors import MissingParams

# Query parameter carrying the organization id. Read on its own, it is not
# part of the session parameters.
ORG_QUERY_PARAM = "org"

# Field name -> query parameter name.
QUERY_PARAM_NAMES = {
    "pdfUrl": "pdf",
    "formationName": "formation",
    "certId": "certId",
    "firstName": "prenom",
    "issueMonth": "mois",
    "issueYear": "annee",
}

REQUIRED_PARAMS = ("pdfUrl", "formationName", "certId")


@dataclass(frozen=True)
class SessionParams:
    """Identifying fields of the certificate shown in a session."""

    pdf_url: Optional[str] = None
    formation_name: Optional[str] = None
    cert_id: Optional[str] = None
    first_name: Optional[str] = None
    issue_month: Optional[str] = None
    issue_year: Optional[str] = None

    def get(self, key: str) -> Optional[str]:
        """Return a field by its external (camelCase) name."""
        return {
            "pdfUrl": self.pdf_url,
            "formationName": self.formation_name,
            "certId": self.cert_id,
            "firstName": self.first_name,
            "issueMonth": self.issue_month,
            "issueYear": self.issue_year,
        }[key]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def read_org_id(args: Mapping[str, str]) -> Optional[str]:
    """Return the organization id from the query string, if any."""
    return _clean(args.get(ORG_QUERY_PARAM))


def session_params_from_query(args: Mapping[str, str]) -> SessionParams:
    """Build SessionParams from already URL-decoded query arguments."""
    return SessionParams(
        pdf_url=_clean(args.get(QUERY_PARAM_NAMES["pdfUrl"])),
        formation_name=_clean(args.get(QUERY_PARAM_NAMES["formationName"])),
        cert_id=_clean(args.get(QUERY_PARAM_NAMES["certId"])),
        first_name=_clean(args.get(QUERY_PARAM_NAMES["firstName"])),
        issue_month=_clean(args.get(QUERY_PARAM_NAMES["issueMonth"])),
        issue_year=_clean(args.get(QUERY_PARAM_NAMES["issueYear"])),
    )


def find_missing_params(params: SessionParams) -> List[str]:
    """Return the required keys that are absent, in declaration order."""
    return [key for key in REQUIRED_PARAMS if not params.get(key)]


def validate_params(params: SessionParams) -> None:
    """Raise MissingParams when a required field is absent."""
    missing = find_missing_params(params)
    if missing:
        raise MissingParams(missing)
