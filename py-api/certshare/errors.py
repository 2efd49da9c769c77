"""Error types raised by the certificate share services."""

from __future__ import annotations

from typing import Iterable, Tuple


class CertShareError(Exception):
    """Base class for every error raised by the service layer."""


class OrgMissing(CertShareError):
    """No organization was supplied, or the configuration could not be loaded."""

    def __init__(self, available_org_ids: Iterable[str] = ()) -> None:
        self.available_org_ids: Tuple[str, ...] = tuple(available_org_ids)
        super().__init__(f"Organization missing (available: {', '.join(self.available_org_ids)})")


class OrgNotFound(CertShareError):
    """The requested organization is not part of the configuration."""

    def __init__(self, org_id: str, available_org_ids: Iterable[str] = ()) -> None:
        self.org_id = org_id
        self.available_org_ids: Tuple[str, ...] = tuple(available_org_ids)
        super().__init__(
            f"Organization {org_id!r} not found (available: {', '.join(self.available_org_ids)})"
        )


class MissingParams(CertShareError):
    """One or more required session parameters are absent."""

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys: Tuple[str, ...] = tuple(keys)
        super().__init__(f"Missing required parameters: {', '.join(self.keys)}")


class RenderError(CertShareError):
    """The certificate document could not be fetched, parsed or drawn."""


class StorageCorrupt(CertShareError):
    """A persisted completion record does not have a readable shape."""


class StorageUnavailable(CertShareError):
    """The completion store could not be read or written."""
