"""
Domain exceptions - Semantic error types for student registration.

This module defines domain-specific exceptions that communicate
business rule violations and external-system failures without leaking
library details (ldap3, httpx) to callers.

Three families:
- RegistrationError: the request or the student's situation is the problem
- PortalError: the document authentication portal misbehaved
- DirectoryError: the LDAP directory misbehaved

The ``retryable`` flag marks failures the caller may resolve by simply
submitting the whole registration again.
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    retryable = False


class InvalidField(RegistrationError):
    """A submitted field could not be parsed into its canonical form."""

    field = "campo"

    def __init__(self, value: str) -> None:
        super().__init__(f"{self.field} inválido: {value!r}")
        self.value = value


class InvalidIdentifier(InvalidField):
    field = "dre"


class InvalidDate(InvalidField):
    field = "data"


class InvalidTime(InvalidField):
    field = "hora"


class InvalidSignatureCode(InvalidField):
    field = "codigo"


class InvalidName(InvalidField):
    field = "nome"


class InvalidEmail(InvalidField):
    field = "email"


class InvalidPhone(InvalidField):
    field = "telefone"


class WeakSecret(RegistrationError):
    """Password does not satisfy PASSWORD_POLICY."""

    pass


class DocumentInvalid(RegistrationError):
    """The portal did not authenticate the enrollment document."""

    pass


class WrongProgram(RegistrationError):
    """Document is authentic but belongs to a student of another program."""

    def __init__(self, program: str) -> None:
        super().__init__(program)
        self.program = program


class DuplicateRegistration(RegistrationError):
    """The enrollment identifier already has an account in the directory."""

    def __init__(self, username: str) -> None:
        super().__init__(username)
        self.username = username


class NameMismatch(RegistrationError):
    """Self-reported name differs from the name on record at the portal."""

    def __init__(self, reported: str, official: str) -> None:
        super().__init__(f"{reported!r} != {official!r}")
        self.reported = reported
        self.official = official


class PortalError(Exception):
    """Base class for document authentication portal failures."""

    retryable = False


class PortalUnavailable(PortalError):
    """Network failure or non-success HTTP status talking to the portal."""

    pass


class PortalContractViolation(PortalError):
    """
    The portal answered with a shape we do not understand.

    Almost always means the portal's pages changed and the scraper needs
    attention; never the student's fault.
    """

    pass


class MissingViewState(PortalContractViolation):
    """Form page had no javax.faces.ViewState input."""

    pass


class AmbiguousVerdict(PortalContractViolation):
    """Answer had both or neither of the valid/invalid markers."""

    pass


class UnexpectedFieldCount(PortalContractViolation):
    """Valid answer did not carry exactly three display fields."""

    def __init__(self, count: int) -> None:
        super().__init__(f"expected 3 fields, got {count}")
        self.count = count


class DirectoryError(Exception):
    """Base class for LDAP directory failures."""

    retryable = False


class DirectoryUnavailable(DirectoryError):
    """Connection, bind or protocol failure."""

    pass


class MissingAttribute(DirectoryError):
    """
    An entry matched but lacks an attribute it must carry.

    Raised when the identifier is registered but its entry has no uid:
    the student exists, we just cannot tell under which username.
    """

    def __init__(self, dn: str, attribute: str) -> None:
        super().__init__(f"{dn} has no {attribute}")
        self.dn = dn
        self.attribute = attribute


class NoAvailableUsername(DirectoryError):
    """
    Every username candidate for the name is taken.

    With this many candidates it is more likely that the directory or the
    candidate generator is misbehaving than that the name is really that
    common; operators should check before blaming the student.
    """

    pass


class CounterUnavailable(DirectoryError):
    """The sambaDomain counter entry is missing or unreadable."""

    pass


class AllocationExhausted(DirectoryError):
    """Lost the uidNumber/sambaNextRid race on every attempt."""

    retryable = True


class AccountCreationConflict(DirectoryError):
    """The add was rejected because the entry appeared meanwhile."""

    retryable = True
