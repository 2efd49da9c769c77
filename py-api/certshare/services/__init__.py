"""Service layer modules for the certificate share API."""

from . import completion_service, config_service, linkedin_service, pdf_service, session_service

__all__ = [
    "completion_service",
    "config_service",
    "linkedin_service",
    "pdf_service",
    "session_service",
]
