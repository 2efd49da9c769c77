"""Organization configuration loading and resolution."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from certshare.errors import OrgMissing, OrgNotFound

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config.json"
FALLBACK_ORGANIZATION_NAME = "Collège des administrateurs de sociétés"


@dataclass(frozen=True)
class OrganizationConfig:
    """Branding and naming for one organization."""

    organization_name: str
    logo_path: Optional[str] = None
    favicon_path: Optional[str] = None
    website_url: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OrganizationConfig":
        """Build a config from one entry of the JSON document."""
        return cls(
            organization_name=data.get("organizationName") or default_organization_name(),
            logo_path=data.get("logo") or None,
            favicon_path=data.get("favicon") or None,
            website_url=data.get("websiteUrl") or None,
        )


def default_organization_name() -> str:
    return os.getenv("DEFAULT_ORGANIZATION_NAME", FALLBACK_ORGANIZATION_NAME)


def config_path() -> Path:
    """Location of the organization mapping, overridable with ORG_CONFIG_PATH."""
    configured = os.getenv("ORG_CONFIG_PATH")
    return Path(configured) if configured else DEFAULT_CONFIG_PATH


def load_organization_mapping(path: Optional[Path] = None) -> Optional[Dict[str, Optional[OrganizationConfig]]]:
    """
    Read the organization mapping from its JSON document.

    Transport problems (missing file, unreadable file, invalid JSON, a
    document that is not an object) are logged and reported as ``None`` so
    that callers treat them like a missing organization. An entry that is not
    an object keeps its id with a None config: it is still listed as available
    but cannot be resolved.

    Args:
        path: Document location, defaults to ``config_path()``

    Returns:
        Mapping of organization id to config, or None when unavailable
    """
    source = path or config_path()
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        _LOGGER.warning("Unable to load organization configuration from %s", source, exc_info=True)
        return None

    if not isinstance(raw, dict):
        _LOGGER.warning("Organization configuration in %s is not a JSON object", source)
        return None

    mapping: Dict[str, Optional[OrganizationConfig]] = {}
    for org_id, entry in raw.items():
        if not isinstance(entry, dict):
            _LOGGER.warning("Organization %r has no usable configuration: entry is not an object", org_id)
            mapping[org_id] = None
            continue
        mapping[org_id] = OrganizationConfig.from_mapping(entry)
    return mapping


def resolve_organization(
    mapping: Optional[Mapping[str, Optional[OrganizationConfig]]],
    org_id: Optional[str],
) -> OrganizationConfig:
    """
    Return the configuration of ``org_id``.

    Raises:
        OrgMissing: no org id given, or the mapping could not be obtained
        OrgNotFound: the id is not a key of the mapping, or its entry is unusable
    """
    if mapping is None:
        raise OrgMissing(())

    available = tuple(mapping.keys())
    if not org_id or not org_id.strip():
        raise OrgMissing(available)

    config = mapping.get(org_id)
    if config is None:
        raise OrgNotFound(org_id, available)
    return config


def branding_for(config: OrganizationConfig) -> Dict[str, Optional[str]]:
    """Header, favicon and title values for the page."""
    return {
        "organizationName": config.organization_name,
        "logoUrl": f"/{config.logo_path}" if config.logo_path else None,
        "faviconUrl": f"/{config.favicon_path}" if config.favicon_path else None,
        "websiteUrl": config.website_url,
        "pageTitle": f"Partage de Certification - {config.organization_name}",
    }
