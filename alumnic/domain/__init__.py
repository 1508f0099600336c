"""
Domain layer - Pure business logic with no infrastructure imports.

This package contains the core business logic for student registration:
name canonicalization, credential hashing, field validation and the
registration orchestrator. It defines its own port interfaces for the
directory and the document portal and never imports web, LDAP or HTTP
client libraries.
"""

from .exceptions import (
    DirectoryError,
    DocumentInvalid,
    DuplicateRegistration,
    InvalidField,
    NameMismatch,
    PortalError,
    RegistrationError,
    WeakSecret,
    WrongProgram,
)
from .ports import Directory, DocumentVerifier, RegistrationForm
from .registration import RegistrationService

__all__ = [
    "Directory",
    "DirectoryError",
    "DocumentInvalid",
    "DocumentVerifier",
    "DuplicateRegistration",
    "InvalidField",
    "NameMismatch",
    "PortalError",
    "RegistrationError",
    "RegistrationForm",
    "RegistrationService",
    "WeakSecret",
    "WrongProgram",
]
