"""
Unit tests for RegistrationService domain logic.

Tests domain logic with mocked ports to verify:
- Validation before any external call
- Both external checks settle before reconciliation
- Reconciliation precedence
- Provisioning of the chosen username
- Exception propagation
"""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, Mock

import pytest
from pydantic import SecretStr

from alumnic.domain.exceptions import (
    AccountCreationConflict,
    DirectoryUnavailable,
    DocumentInvalid,
    DuplicateRegistration,
    InvalidIdentifier,
    NameMismatch,
    PortalContractViolation,
    PortalUnavailable,
    WeakSecret,
    WrongProgram,
)
from alumnic.domain.ports import (
    AlreadyRegistered,
    DirectoryAllocation,
    DocumentUnrecognized,
    EnrolledStudent,
    OtherProgramStudent,
    RegistrationForm,
    SlotAvailable,
)
from alumnic.domain.registration import RegistrationService


def make_service(lookup=None, verification=None) -> tuple[RegistrationService, Mock, Mock]:
    """Service over a mock directory and a mock verifier."""
    directory = Mock()
    if isinstance(lookup, BaseException):
        directory.lookup.side_effect = lookup
    else:
        directory.lookup.return_value = lookup or SlotAvailable("joaocps")
    directory.provision.return_value = DirectoryAllocation(uid_number=5001, rid=10001)

    verifier = Mock()
    if isinstance(verification, BaseException):
        verifier.verify = AsyncMock(side_effect=verification)
    else:
        verifier.verify = AsyncMock(
            return_value=verification or EnrolledStudent("JOAO CARLOS PEREIRA SILVA")
        )

    return RegistrationService(directory=directory, verifier=verifier), directory, verifier


@pytest.fixture
def form() -> RegistrationForm:
    return RegistrationForm(
        identifier="123456789",
        issue_date="01/03/2024",
        issue_time="09:05",
        signature_code="ABCD.1234.EF56.7890.ABCD.1234.EF56.7890",
        full_name="João Carlos Pereira da Silva",
        email="joao@exemplo.com",
        phone="21987654321",
        password=SecretStr("Segredo123"),
    )


class TestRegisterScenarios:
    """End-to-end outcomes of register()."""

    @pytest.mark.asyncio
    async def test_enrolled_student_with_free_slot_is_created(self, form: RegistrationForm) -> None:
        """Matching name and free slot create the account under that username."""
        service, directory, verifier = make_service()

        username = await service.register(form)

        assert username == "joaocps"
        verifier.verify.assert_awaited_once()
        credentials = verifier.verify.call_args[0][0]
        assert credentials.identifier == "123456789"
        assert credentials.signature_code == "ABCD.1234.EF56.7890.ABCD.1234.EF56.7890"
        directory.lookup.assert_called_once_with("123456789", "João Carlos Pereira da Silva")
        provisioned_username, account = directory.provision.call_args[0]
        assert provisioned_username == "joaocps"
        assert account.identifier == "123456789"
        assert account.phone == "+5521987654321"

    @pytest.mark.asyncio
    async def test_already_registered_wins_over_document(self, form: RegistrationForm) -> None:
        """An existing account is reported whatever the portal says."""
        service, directory, _ = make_service(
            lookup=AlreadyRegistered("joaocps"), verification=DocumentUnrecognized()
        )

        with pytest.raises(DuplicateRegistration) as exc_info:
            await service.register(form)

        assert exc_info.value.username == "joaocps"
        directory.provision.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_registered_wins_over_portal_failure(self, form: RegistrationForm) -> None:
        service, _, _ = make_service(
            lookup=AlreadyRegistered("joaocps"), verification=PortalUnavailable("down")
        )

        with pytest.raises(DuplicateRegistration):
            await service.register(form)

    @pytest.mark.asyncio
    async def test_other_program_is_refused(self, form: RegistrationForm) -> None:
        """Students of other programs are refused even with a free slot."""
        service, directory, _ = make_service(
            verification=OtherProgramStudent("JOAO CARLOS PEREIRA SILVA", "Matemática")
        )

        with pytest.raises(WrongProgram) as exc_info:
            await service.register(form)

        assert exc_info.value.program == "Matemática"
        directory.provision.assert_not_called()

    @pytest.mark.asyncio
    async def test_name_mismatch(self, form: RegistrationForm) -> None:
        """A different token sequence is a mismatch."""
        service, directory, _ = make_service(verification=EnrolledStudent("Joao Carlos Silva"))

        with pytest.raises(NameMismatch) as exc_info:
            await service.register(replace(form, full_name="Joao Silva"))

        assert exc_info.value.reported == "Joao Silva"
        assert exc_info.value.official == "Joao Carlos Silva"
        directory.provision.assert_not_called()

    @pytest.mark.asyncio
    async def test_unrecognized_document(self, form: RegistrationForm) -> None:
        service, directory, _ = make_service(verification=DocumentUnrecognized())

        with pytest.raises(DocumentInvalid):
            await service.register(form)

        directory.provision.assert_not_called()

    @pytest.mark.asyncio
    async def test_names_compare_without_accents_or_particles(self, form: RegistrationForm) -> None:
        """The portal's uppercase unaccented record matches the typed name."""
        service, _, _ = make_service(verification=EnrolledStudent("JOAO CARLOS PEREIRA DA SILVA"))

        assert await service.register(form) == "joaocps"


class TestRegisterFailures:
    """Failure propagation of register()."""

    @pytest.mark.asyncio
    async def test_invalid_field_stops_before_external_checks(self, form: RegistrationForm) -> None:
        service, directory, verifier = make_service()

        with pytest.raises(InvalidIdentifier):
            await service.register(replace(form, identifier="12"))

        verifier.verify.assert_not_called()
        directory.lookup.assert_not_called()

    @pytest.mark.asyncio
    async def test_weak_password(self, form: RegistrationForm) -> None:
        service, directory, _ = make_service()

        with pytest.raises(WeakSecret):
            await service.register(replace(form, password=SecretStr("fraca")))

        directory.lookup.assert_not_called()

    @pytest.mark.asyncio
    async def test_directory_failure_wins_over_portal_failure(self, form: RegistrationForm) -> None:
        service, _, _ = make_service(
            lookup=DirectoryUnavailable("ldap down"), verification=PortalUnavailable("portal down")
        )

        with pytest.raises(DirectoryUnavailable):
            await service.register(form)

    @pytest.mark.asyncio
    async def test_portal_failure(self, form: RegistrationForm) -> None:
        service, directory, _ = make_service(verification=PortalUnavailable("timeout"))

        with pytest.raises(PortalUnavailable):
            await service.register(form)

        directory.provision.assert_not_called()

    @pytest.mark.asyncio
    async def test_unparseable_official_name(self, form: RegistrationForm) -> None:
        """A name the portal should never return is its fault, not the student's."""
        service, _, _ = make_service(verification=EnrolledStudent("???"))

        with pytest.raises(PortalContractViolation):
            await service.register(form)

    @pytest.mark.asyncio
    async def test_retryable_provisioning_failure_propagates(self, form: RegistrationForm) -> None:
        service, directory, _ = make_service()
        directory.provision.side_effect = AccountCreationConflict("joaocps")

        with pytest.raises(AccountCreationConflict) as exc_info:
            await service.register(form)

        assert exc_info.value.retryable is True


class TestConcurrentChecks:
    """Both external checks run together and both settle."""

    @pytest.mark.asyncio
    async def test_checks_overlap(self, form: RegistrationForm) -> None:
        """The directory probe runs while the portal check is pending."""
        service, directory, verifier = make_service()
        lookup_seen_during_verify = []

        async def slow_verify(credentials):
            for _ in range(50):
                if directory.lookup.called:
                    break
                await asyncio.sleep(0.01)
            lookup_seen_during_verify.append(directory.lookup.called)
            return EnrolledStudent("Joao Carlos Pereira Silva")

        verifier.verify = AsyncMock(side_effect=slow_verify)

        assert await service.register(form) == "joaocps"
        assert lookup_seen_during_verify == [True]

    @pytest.mark.asyncio
    async def test_portal_failure_waits_for_directory(self, form: RegistrationForm) -> None:
        """A fast failure does not abandon the other branch."""
        service, directory, _ = make_service(verification=PortalUnavailable("down"))

        with pytest.raises(PortalUnavailable):
            await service.register(form)

        directory.lookup.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, form: RegistrationForm) -> None:
        """Cancelling the registration cancels the pending checks."""
        service, directory, verifier = make_service()
        started = asyncio.Event()

        async def never_answers(credentials):
            started.set()
            await asyncio.Event().wait()

        verifier.verify = AsyncMock(side_effect=never_answers)

        task = asyncio.create_task(service.register(form))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        directory.provision.assert_not_called()


class TestCreateAccount:
    """Tests for create_account(), the unverified path."""

    @pytest.mark.asyncio
    async def test_provisions_chosen_username(self) -> None:
        service, directory, verifier = make_service()

        username = await service.create_account(
            username="jcsilva",
            identifier="123456789",
            full_name="joão carlos silva",
            email="joao@exemplo.com",
            phone="21987654321",
            password=SecretStr("Segredo123"),
        )

        assert username == "jcsilva"
        verifier.verify.assert_not_called()
        directory.lookup.assert_not_called()
        provisioned_username, account = directory.provision.call_args[0]
        assert provisioned_username == "jcsilva"
        assert account.full_name == "João Carlos Silva"

    @pytest.mark.asyncio
    async def test_fields_still_validated(self) -> None:
        service, directory, _ = make_service()

        with pytest.raises(WeakSecret):
            await service.create_account(
                "jcsilva", "123456789", "joão silva", "joao@exemplo.com", "21987654321", "fraca"
            )

        directory.provision.assert_not_called()
