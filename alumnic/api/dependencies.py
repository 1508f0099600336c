"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting the registration
service into routes, and the function that wires it from settings.
"""

from fastapi import Request

from alumnic.adapters.directory.ldap import LdapDirectory
from alumnic.adapters.portal.gnosys import GnosysVerifier
from alumnic.config.settings import Settings
from alumnic.domain.registration import RegistrationService


def build_registration_service(settings: Settings) -> RegistrationService:
    """Wire the LDAP directory and the Gnosys verifier into the domain service."""
    return RegistrationService(
        directory=LdapDirectory.from_settings(settings),
        verifier=GnosysVerifier.from_settings(settings),
    )


def get_registration_service(request: Request) -> RegistrationService:
    """
    Get registration service from app state.

    The service is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.registration_service
