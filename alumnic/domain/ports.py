"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the values exchanged with the outside world and the
interfaces (ports) the domain requires from infrastructure. Adapters
implement these protocols.

Outcomes of the two external checks are closed unions of frozen
dataclasses; the orchestrator dispatches on them with isinstance.
"""

from dataclasses import dataclass
from typing import Protocol

from pydantic import SecretStr


@dataclass(frozen=True)
class RegistrationForm:
    """Raw registration fields exactly as submitted, untrusted."""

    identifier: str
    issue_date: str
    issue_time: str
    signature_code: str
    full_name: str
    email: str
    phone: str
    password: SecretStr


@dataclass(frozen=True)
class DocumentCredentials:
    """Validated fields of the "Regularmente Matriculado" document."""

    identifier: str  # 9 digits
    issue_date: str  # dd/mm/yyyy
    issue_time: str  # HH:MM
    signature_code: str  # XXXX.XXXX.XXXX.XXXX.XXXX.XXXX.XXXX.XXXX


@dataclass(frozen=True)
class AccountRequest:
    """Validated fields that end up in the directory entry."""

    identifier: str
    full_name: str
    email: str
    phone: str
    password: SecretStr


@dataclass(frozen=True)
class RegistrationRequest:
    """Everything needed for one registration attempt, already canonical."""

    document: DocumentCredentials
    account: AccountRequest

    @property
    def identifier(self) -> str:
        return self.account.identifier


@dataclass(frozen=True)
class DirectoryAllocation:
    """uidNumber and Samba RID handed out to one new account."""

    uid_number: int
    rid: int


# Document verification outcomes


@dataclass(frozen=True)
class EnrolledStudent:
    """Document authenticated; the student belongs to the target program."""

    official_name: str


@dataclass(frozen=True)
class OtherProgramStudent:
    """Document authenticated; the student belongs to another program."""

    official_name: str
    program: str


@dataclass(frozen=True)
class DocumentUnrecognized:
    """The portal did not authenticate the document."""


VerificationOutcome = EnrolledStudent | OtherProgramStudent | DocumentUnrecognized


# Directory lookup outcomes


@dataclass(frozen=True)
class SlotAvailable:
    """Identifier is new; ``username`` is the first free candidate."""

    username: str


@dataclass(frozen=True)
class AlreadyRegistered:
    """Identifier already has an entry, under ``username``."""

    username: str


DirectoryLookupOutcome = SlotAvailable | AlreadyRegistered


class DocumentVerifier(Protocol):
    """Port interface for the document authentication portal."""

    async def verify(self, credentials: DocumentCredentials) -> VerificationOutcome:
        """
        Authenticate an enrollment document.

        Args:
            credentials: Validated document fields

        Returns:
            Which of the three verification outcomes applies

        Raises:
            PortalError: Portal unreachable or answering in an unknown shape
        """
        ...


class Directory(Protocol):
    """
    Port interface for the LDAP directory.

    Methods are blocking; the orchestrator runs them in worker threads.
    Each call opens, uses and closes its own session.
    """

    def lookup(self, identifier: str, full_name: str) -> DirectoryLookupOutcome:
        """
        Find the existing username for an identifier, or a free one.

        Raises:
            DirectoryError: Directory failure, entry without uid, or no
                free username candidate
        """
        ...

    def provision(self, username: str, account: AccountRequest) -> DirectoryAllocation:
        """
        Allocate ids and create the account entry.

        Raises:
            DirectoryError: AllocationExhausted and AccountCreationConflict
                are retryable; everything else is not
        """
        ...

    def ping(self) -> None:
        """Open and bind a session, then close it."""
        ...
