"""
Registration domain service - Student account provisioning workflow.

This module contains the core business logic for registering a student,
reconciling two independent sources of truth before writing to the
directory.

Registration State Machine
==========================

States (any of them may exit with an error):

    VALIDATING
        Every raw field is parsed into canonical form; the first invalid
        field aborts with its InvalidField subclass.
    AWAITING_EXTERNAL_CHECKS
        The portal verification and the directory probe start together
        and are joined: both settle before anything is decided. Cancelling
        the registration here cancels the pending work and discards
        partial results.
    RECONCILING
        Outcomes are combined, in this order of precedence:
            directory failure           -> DirectoryError
            AlreadyRegistered(uid)      -> DuplicateRegistration(uid)
            portal failure              -> PortalError
            DocumentUnrecognized        -> DocumentInvalid
            OtherProgramStudent         -> WrongProgram(program)
            canonical names differ      -> NameMismatch(reported, official)
    PROVISIONING
        Ids are allocated and the entry created. AllocationExhausted and
        AccountCreationConflict are retryable: a new attempt re-probes
        username availability from scratch.
    DONE
        The assigned username is returned.

No partial writes are possible: the entry is created by a single add, and
a failed allocation leaves nothing behind.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from pydantic import SecretStr

from .exceptions import (
    DocumentInvalid,
    DuplicateRegistration,
    NameMismatch,
    PortalContractViolation,
    WrongProgram,
)
from .names import NameFormatError, canonicalize
from .ports import (
    AlreadyRegistered,
    Directory,
    DirectoryLookupOutcome,
    DocumentUnrecognized,
    DocumentVerifier,
    OtherProgramStudent,
    RegistrationForm,
    RegistrationRequest,
    VerificationOutcome,
)
from .validation import validate_account, validate_registration

logger = logging.getLogger(__name__)


class RegistrationState(str, Enum):
    """Stages of one registration attempt, logged as it advances."""

    VALIDATING = "VALIDATING"
    AWAITING_EXTERNAL_CHECKS = "AWAITING_EXTERNAL_CHECKS"
    RECONCILING = "RECONCILING"
    PROVISIONING = "PROVISIONING"
    DONE = "DONE"


@dataclass
class RegistrationService:
    """
    Domain service for student registration.

    Orchestrates validation, the concurrent external checks, the
    reconciliation of their outcomes and the directory write.
    """

    directory: Directory
    verifier: DocumentVerifier

    async def register(self, form: RegistrationForm) -> str:
        """
        Register a student from a raw registration form.

        Args:
            form: Untrusted fields as submitted

        Returns:
            Username of the newly created account

        Raises:
            RegistrationError: Invalid input or the student is not eligible
            PortalError: The portal failed or changed shape
            DirectoryError: The directory failed; check ``retryable``
        """
        logger.debug("Registration form received, %s", RegistrationState.VALIDATING.value)
        request = validate_registration(form)

        self._enter(RegistrationState.AWAITING_EXTERNAL_CHECKS, request.identifier)
        verification, lookup = await self._run_external_checks(request)

        self._enter(RegistrationState.RECONCILING, request.identifier)
        username = self._reconcile(request, verification, lookup)

        self._enter(RegistrationState.PROVISIONING, request.identifier)
        allocation = await asyncio.to_thread(self.directory.provision, username, request.account)
        logger.info(
            "Created %s for %s (uidNumber=%d, rid=%d)",
            username,
            request.identifier,
            allocation.uid_number,
            allocation.rid,
        )

        self._enter(RegistrationState.DONE, request.identifier)
        return username

    async def create_account(
        self,
        username: str,
        identifier: str,
        full_name: str,
        email: str,
        phone: str,
        password: SecretStr,
    ) -> str:
        """
        Create an account under a chosen username, skipping the document check.

        Meant for supervisors handling the cases the normal flow rejects.
        The account fields are still validated.

        Returns:
            The username, unchanged
        """
        account = validate_account(identifier, full_name, email, phone, password)
        logger.info("Creating %s for %s without document check", username, account.identifier)
        allocation = await asyncio.to_thread(self.directory.provision, username, account)
        logger.info(
            "Created %s (uidNumber=%d, rid=%d)", username, allocation.uid_number, allocation.rid
        )
        return username

    async def _run_external_checks(
        self, request: RegistrationRequest
    ) -> tuple[VerificationOutcome | BaseException, DirectoryLookupOutcome | BaseException]:
        """
        Run the portal verification and the directory probe concurrently.

        Each branch owns its own connection. Failures are returned, not
        raised, so that both branches settle before reconciliation.
        """
        verification, lookup = await asyncio.gather(
            self.verifier.verify(request.document),
            asyncio.to_thread(
                self.directory.lookup, request.identifier, request.account.full_name
            ),
            return_exceptions=True,
        )
        for branch, result in (("portal", verification), ("directory", lookup)):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning(
                    "External check %s failed for %s: %r", branch, request.identifier, result
                )
        return verification, lookup

    def _reconcile(
        self,
        request: RegistrationRequest,
        verification: VerificationOutcome | BaseException,
        lookup: DirectoryLookupOutcome | BaseException,
    ) -> str:
        """Combine both outcomes into the username to create, or raise."""
        if isinstance(lookup, BaseException):
            raise lookup
        if isinstance(lookup, AlreadyRegistered):
            raise DuplicateRegistration(lookup.username)

        if isinstance(verification, BaseException):
            raise verification
        if isinstance(verification, DocumentUnrecognized):
            raise DocumentInvalid()
        if isinstance(verification, OtherProgramStudent):
            raise WrongProgram(verification.program)

        reported = request.account.full_name
        try:
            official = canonicalize(verification.official_name)
        except NameFormatError as exc:
            raise PortalContractViolation(
                f"unparseable official name {verification.official_name!r}"
            ) from exc
        if canonicalize(reported) != official:
            raise NameMismatch(reported=reported, official=verification.official_name)

        logger.info("Username %s is free for %s", lookup.username, request.identifier)
        return lookup.username

    def _enter(self, state: RegistrationState, identifier: str) -> None:
        logger.debug("Registration %s: %s", identifier, state.value)
