"""
Field validators - Parse raw registration fields into canonical form.

Each validator takes untrusted input and either returns the one canonical
representation used by the portal and by the directory, or raises the
field's InvalidField subclass. Surrounding whitespace is always tolerated,
and every validator returns its own output unchanged when fed it again.

Digit classes are ASCII-only (re.ASCII): "١٢٣" is not a date.
"""

import re
from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email as parse_mailbox
from pydantic import SecretStr

from .exceptions import (
    InvalidDate,
    InvalidEmail,
    InvalidIdentifier,
    InvalidName,
    InvalidPhone,
    InvalidSignatureCode,
    InvalidTime,
    WeakSecret,
)
from .names import PARTICLES, NameFormatError, canonicalize
from .ports import AccountRequest, DocumentCredentials, RegistrationForm, RegistrationRequest


@dataclass(frozen=True)
class PasswordPolicy:
    """Password bounds; the only place they are defined."""

    min_length: int
    max_length: int
    require_lowercase: bool
    require_uppercase: bool
    require_digit: bool


PASSWORD_POLICY = PasswordPolicy(
    min_length=8,
    max_length=25,
    require_lowercase=True,
    require_uppercase=True,
    require_digit=True,
)

_IDENTIFIER_RE = re.compile(r"^\s*(\d{9})\s*$", re.ASCII)
# "1/1/2025", "01 / 01 / 25", ...
_DATE_SLASHED_RE = re.compile(r"^\s*(\d{1,2})\s*/\s*(\d{1,2})\s*/\s*(\d{1,4})\s*$", re.ASCII)
# "01012025", "01 01 2025", ...
_DATE_PACKED_RE = re.compile(r"^\s*(\d{2})\s*(\d{2})\s*(\d{4})\s*$", re.ASCII)
_TIME_RE = re.compile(r"^\s*(\d{1,2})\s*:\s*(\d{1,2})\s*$", re.ASCII)
_SIGNATURE_CODE_RE = re.compile(
    r"^\s*([0-9A-F]{4})" + r"\s*\.\s*([0-9A-F]{4})" * 7 + r"\s*$",
    re.ASCII,
)
_PHONE_RE = re.compile(
    r"""
    ^\s*
    (?:\+\s*55\s*)?                         # country code
    (?:\(\s*0?(\d{2})\s*\)|0?(\d{2}))       # area code, optionally (0XX)
    \s*(\d{4,5})\s*-?\s*(\d{4})             # subscriber, optionally hyphenated
    \s*$
    """,
    re.ASCII | re.VERBOSE,
)


def validate_identifier(raw: str) -> str:
    """Enrollment identifier (DRE): exactly nine digits."""
    match = _IDENTIFIER_RE.match(raw)
    if match is None:
        raise InvalidIdentifier(raw)
    return match.group(1)


def validate_date(raw: str) -> str:
    """
    Document issue date, normalized to dd/mm/yyyy.

    Accepted shapes:
    - slash-separated, 1-2 digit day and month, 1-4 digit year
    - packed or space-separated, always 2+2+4 digits

    Years below 1000 are taken as 2000 + year ("25" -> 2025, "100" -> 2100).
    """
    match = _DATE_SLASHED_RE.match(raw) or _DATE_PACKED_RE.match(raw)
    if match is None:
        raise InvalidDate(raw)

    day, month, year = (int(group) for group in match.groups())
    if year < 1000:
        year += 2000
    return f"{day:02d}/{month:02d}/{year}"


def validate_time(raw: str) -> str:
    """
    Document issue time, normalized to HH:MM.

    Only the shape is checked: "24:00" and "12:60" pass.
    """
    match = _TIME_RE.match(raw)
    if match is None:
        raise InvalidTime(raw)

    hours, minutes = (int(group) for group in match.groups())
    return f"{hours:02d}:{minutes:02d}"


def validate_signature_code(raw: str) -> str:
    """Document signature: eight dot-separated groups of four uppercase hex digits."""
    match = _SIGNATURE_CODE_RE.match(raw)
    if match is None:
        raise InvalidSignatureCode(raw)
    return ".".join(match.groups())


def validate_name(raw: str) -> str:
    """
    Full name, re-capitalized for display.

    The name must canonicalize. Each word gets an uppercase first letter,
    particles stay lowercase, and runs of whitespace collapse:
    "josé da     silva" -> "José da Silva".
    """
    try:
        canonicalize(raw)
    except NameFormatError as exc:
        raise InvalidName(raw) from exc

    words = []
    for word in raw.lower().split():
        if word in PARTICLES:
            words.append(word)
        else:
            initial = word[0].upper()
            # "ß".upper() is "SS"; keep such letters so the name re-validates unchanged
            if len(initial) != 1:
                initial = word[0]
            words.append(initial + word[1:])
    return " ".join(words)


def validate_email(raw: str) -> str:
    """
    External email address.

    Parsed with the RFC mailbox grammar (no DNS lookups); the domain is
    lowercased and the local part kept as typed. Special-use domains such as
    .local or .localhost are rejected; the address must be reachable from
    the internet.
    """
    try:
        parsed = parse_mailbox(raw.strip(), check_deliverability=False, allow_quoted_local=True)
    except EmailNotValidError as exc:
        raise InvalidEmail(raw) from exc
    return f"{parsed.local_part}@{parsed.domain.lower()}"


def validate_phone(raw: str) -> str:
    """
    Brazilian phone number, normalized to +55 + area code + subscriber.

    "(021) 98765-4321", "+55 21 987654321" and "2134567890" are all
    accepted; the first becomes "+5521987654321".
    """
    match = _PHONE_RE.match(raw)
    if match is None:
        raise InvalidPhone(raw)

    parenthesized_area, bare_area, head, tail = match.groups()
    return f"+55{parenthesized_area or bare_area}{head}{tail}"


def validate_password(password: SecretStr | str) -> SecretStr:
    """
    Check a password against PASSWORD_POLICY.

    Raises:
        WeakSecret: Any rule of the policy fails. The password is never
            included in the error.
    """
    if not isinstance(password, SecretStr):
        password = SecretStr(password)
    value = password.get_secret_value()
    policy = PASSWORD_POLICY

    if not policy.min_length <= len(value) <= policy.max_length:
        raise WeakSecret()
    if policy.require_lowercase and not any(char.islower() for char in value):
        raise WeakSecret()
    if policy.require_uppercase and not any(char.isupper() for char in value):
        raise WeakSecret()
    if policy.require_digit and not any(char.isdigit() for char in value):
        raise WeakSecret()
    return password


def validate_account(
    identifier: str,
    full_name: str,
    email: str,
    phone: str,
    password: SecretStr | str,
) -> AccountRequest:
    """Validate the fields stored in the directory entry."""
    return AccountRequest(
        identifier=validate_identifier(identifier),
        full_name=validate_name(full_name),
        email=validate_email(email),
        phone=validate_phone(phone),
        password=validate_password(password),
    )


def validate_registration(form: RegistrationForm) -> RegistrationRequest:
    """
    Validate a whole registration form, first failure wins.

    Field order: identifier, date, time, signature code, name, email,
    phone, password.
    """
    identifier = validate_identifier(form.identifier)
    document = DocumentCredentials(
        identifier=identifier,
        issue_date=validate_date(form.issue_date),
        issue_time=validate_time(form.issue_time),
        signature_code=validate_signature_code(form.signature_code),
    )
    account = validate_account(identifier, form.full_name, form.email, form.phone, form.password)
    return RegistrationRequest(document=document, account=account)
