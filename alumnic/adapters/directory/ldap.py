"""
LDAP directory adapter - Implements the Directory protocol via ldap3.

Every port operation runs inside one session: open a connection, bind
with the service account, do the work, and unbind on every exit path,
failures included.

Concurrency Design - Optimistic Id Allocation:
---------------------------------------------
uidNumber and sambaNextRid live on the single sambaDomain entry and are
shared by every registration. Instead of a lock, allocation reads both
values and submits one modify that deletes the exact old values and adds
the incremented ones. If another registration won the race, the old
values are gone, the delete fails and the whole modify is rejected
atomically; we re-read and try again, up to MAX_ALLOCATION_ATTEMPTS times.

Two registrations picking the same free username is not prevented either:
the second add fails with entryAlreadyExists and surfaces as the retryable
AccountCreationConflict.
"""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from ldap3 import LEVEL, MODIFY_ADD, MODIFY_DELETE, NO_ATTRIBUTES, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn
from pydantic import SecretStr

from alumnic.config.settings import AccountDefaults, Settings
from alumnic.domain.exceptions import (
    AccountCreationConflict,
    AllocationExhausted,
    CounterUnavailable,
    DirectoryError,
    DirectoryUnavailable,
    MissingAttribute,
    NoAvailableUsername,
)
from alumnic.domain.hashes import generate_salted_hash, legacy_hash
from alumnic.domain.names import CanonicalName, ascii_transliteration, canonicalize, username_candidates
from alumnic.domain.ports import (
    AccountRequest,
    AlreadyRegistered,
    DirectoryAllocation,
    DirectoryLookupOutcome,
    SlotAvailable,
)

logger = logging.getLogger(__name__)

IDENTIFIER_ATTRIBUTE = "dccDRE"
COUNTER_FILTER = "(objectClass=sambaDomain)"
MAX_ALLOCATION_ATTEMPTS = 5

OBJECT_CLASSES = [
    "dcc",
    "dccAluno",
    "sambaSamAccount",
    "shadowAccount",
    "posixAccount",
    "inetOrgPerson",
]

SECONDS_PER_DAY = 24 * 60 * 60
# Long labelled "+10 years", but 3600*24*60*60 seconds is about 41.6 days.
# Other systems read the stored value, so the number is kept.
KICKOFF_OFFSET_SECONDS = 3600 * 24 * 60 * 60
RENEWAL_OFFSET_DAYS = 3600

# Lab logins never lock nor expire
SHADOW_POLICY = {
    "shadowExpire": "-1",
    "shadowFlag": "-1",
    "shadowInactive": "-1",
    "shadowMax": "3600",
    "shadowMin": "0",
    "shadowWarning": "14",
}


def _first_value(entry: dict[str, Any], attribute: str) -> str | None:
    values = entry.get("raw_attributes", {}).get(attribute) or []
    if not values:
        return None
    value = values[0]
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class LdapSession:
    """
    Operations available on one bound connection.

    Obtained from LdapDirectory.session(); never outlives it.
    """

    def __init__(
        self,
        connection: Connection,
        base_dn: str,
        people_dn: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._connection = connection
        self._base_dn = base_dn
        self._people_dn = people_dn
        self._clock = clock

    def _search(self, search_filter: str, scope: str, attributes: list[str]) -> list[dict[str, Any]]:
        try:
            self._connection.search(
                search_base=self._base_dn,
                search_filter=search_filter,
                search_scope=scope,
                attributes=attributes,
            )
        except LDAPException as exc:
            raise DirectoryUnavailable(f"search {search_filter} failed: {exc}") from exc

        # ldap3 reports "no entries" as False too, so look at the result code
        result = self._connection.result or {}
        if result.get("result", 0) != 0:
            raise DirectoryUnavailable(
                f"search {search_filter} failed: {result.get('description')}"
            )
        return [
            entry
            for entry in self._connection.response or []
            if entry.get("type") == "searchResEntry"
        ]

    def find_by_identifier(self, identifier: str) -> str | None:
        """
        Username of the entry registered under an enrollment identifier.

        Returns:
            The uid, or None when the identifier is not registered

        Raises:
            MissingAttribute: The identifier is registered but its entry has no uid
        """
        search_filter = f"({IDENTIFIER_ATTRIBUTE}={escape_filter_chars(identifier)})"
        entries = self._search(search_filter, SUBTREE, ["uid"])
        if not entries:
            return None

        entry = entries[0]
        username = _first_value(entry, "uid")
        if username is None:
            raise MissingAttribute(entry.get("dn", ""), "uid")
        return username

    def username_taken(self, candidate: str) -> bool:
        """Whether any entry already uses ``candidate`` as uid."""
        search_filter = f"(uid={escape_filter_chars(candidate)})"
        return bool(self._search(search_filter, SUBTREE, [NO_ATTRIBUTES]))

    def first_available_username(self, name: CanonicalName) -> str:
        """
        First username candidate not yet in use.

        Raises:
            NoAvailableUsername: Every candidate is taken
        """
        for candidate in username_candidates(name):
            if not self.username_taken(candidate):
                return candidate
            logger.debug("Username %s is taken", candidate)
        raise NoAvailableUsername(" ".join(name.tokens))

    def _read_counters(self) -> tuple[str, int, int]:
        entries = self._search(COUNTER_FILTER, LEVEL, ["uidNumber", "sambaNextRid"])
        if not entries:
            raise CounterUnavailable(f"no sambaDomain entry under {self._base_dn}")

        entry = entries[0]
        uid_number = _first_value(entry, "uidNumber")
        rid = _first_value(entry, "sambaNextRid")
        try:
            return entry["dn"], int(uid_number), int(rid)  # type: ignore[arg-type]
        except (KeyError, TypeError, ValueError) as exc:
            raise CounterUnavailable(f"unreadable counters: {uid_number!r}, {rid!r}") from exc

    def allocate_ids(self) -> DirectoryAllocation:
        """
        Take the next uidNumber and Samba RID.

        Raises:
            CounterUnavailable: The counter entry is missing or malformed
            AllocationExhausted: Lost the race MAX_ALLOCATION_ATTEMPTS times
        """
        for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
            dn, uid_number, rid = self._read_counters()
            allocation = DirectoryAllocation(uid_number=uid_number + 1, rid=rid + 1)
            changes = {
                "uidNumber": [
                    (MODIFY_DELETE, [str(uid_number)]),
                    (MODIFY_ADD, [str(allocation.uid_number)]),
                ],
                "sambaNextRid": [
                    (MODIFY_DELETE, [str(rid)]),
                    (MODIFY_ADD, [str(allocation.rid)]),
                ],
            }
            try:
                modified = self._connection.modify(dn, changes)
            except LDAPException as exc:
                raise DirectoryUnavailable(f"modify {dn} failed: {exc}") from exc

            if modified:
                return allocation
            logger.warning(
                "Id allocation attempt %d/%d lost the race (%s)",
                attempt,
                MAX_ALLOCATION_ATTEMPTS,
                (self._connection.result or {}).get("description"),
            )

        raise AllocationExhausted(f"gave up after {MAX_ALLOCATION_ATTEMPTS} attempts")

    def create_account(
        self,
        username: str,
        allocation: DirectoryAllocation,
        account: AccountRequest,
        defaults: AccountDefaults,
    ) -> None:
        """
        Add the student's entry.

        Raises:
            AccountCreationConflict: The entry already exists (retryable)
            DirectoryError: The directory rejected the add for another reason
        """
        dn = f"uid={escape_rdn(username)},{self._people_dn}"
        given_name, *surnames = account.full_name.split()

        now = int(self._clock())
        kickoff = now + KICKOFF_OFFSET_SECONDS
        today = now // SECONDS_PER_DAY

        attributes = {
            IDENTIFIER_ATTRIBUTE: account.identifier,
            "uid": username,
            "uidNumber": str(allocation.uid_number),
            "gidNumber": defaults.gid_number,
            "homeDirectory": f"{defaults.home_prefix}{username}",
            "loginShell": defaults.login_shell,
            "mail": f"{username}@{defaults.mail_domain}",
            "cn": given_name,
            "sn": " ".join(surnames),
            "gecos": ascii_transliteration(account.full_name),
            "emailExterno": account.email,
            "telephoneNumber": account.phone,
            "userPassword": generate_salted_hash(account.password),
            "sambaSID": f"{defaults.samba_sid_prefix}{allocation.rid}",
            "sambaAcctFlags": defaults.samba_acct_flags,
            "sambaKickoffTime": str(kickoff),
            "sambaLMPassword": defaults.samba_lm_password,
            "sambaNTPassword": legacy_hash(account.password),
            "sambaPasswordHistory": defaults.samba_password_history,
            "sambaPrimaryGroupSID": defaults.samba_primary_group_sid,
            "sambaPwdLastSet": str(now),
            "sambaPwdMustChange": str(kickoff),
            "shadowLastChange": str(today),
            **SHADOW_POLICY,
            "cota": defaults.quota,
            "monitor": "0",
            "dataCriacao": str(today),
            "dataRenovacao": str(today + RENEWAL_OFFSET_DAYS),
        }

        try:
            added = self._connection.add(dn, OBJECT_CLASSES, attributes)
        except LDAPException as exc:
            raise DirectoryUnavailable(f"add {dn} failed: {exc}") from exc

        if not added:
            description = (self._connection.result or {}).get("description")
            if description == "entryAlreadyExists":
                raise AccountCreationConflict(username)
            raise DirectoryError(f"add {dn} rejected: {description}")


class LdapDirectory:
    """
    Implements Directory protocol via ldap3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Holds configuration only; every call opens its own connection, so one
    instance is safe to share between threads.
    """

    def __init__(
        self,
        url: str,
        bind_dn: str,
        bind_password: SecretStr,
        base_dn: str,
        people_dn: str,
        defaults: AccountDefaults,
        connect_timeout: float = 5.0,
        receive_timeout: float = 10.0,
        connection_factory: Callable[[], Connection] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize directory with connection parameters.

        Args:
            connection_factory: Builds an unbound connection; defaults to
                an ldap3 Connection to ``url``
            clock: Source of the current Unix time for date attributes
        """
        self._url = url
        self._bind_dn = bind_dn
        self._bind_password = bind_password
        self._base_dn = base_dn
        self._people_dn = people_dn
        self._defaults = defaults
        self._connect_timeout = connect_timeout
        self._receive_timeout = receive_timeout
        self._connection_factory = connection_factory or self._connect
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "LdapDirectory":
        return cls(
            url=settings.ldap_url,
            bind_dn=settings.ldap_bind_dn,
            bind_password=settings.ldap_bind_pw,
            base_dn=settings.ldap_base_dn,
            people_dn=settings.ldap_people_dn,
            defaults=settings.account,
            connect_timeout=settings.ldap_connect_timeout,
            receive_timeout=settings.ldap_receive_timeout,
        )

    def _connect(self) -> Connection:
        server = Server(self._url, connect_timeout=self._connect_timeout)
        return Connection(
            server,
            user=self._bind_dn,
            password=self._bind_password.get_secret_value(),
            receive_timeout=self._receive_timeout,
            raise_exceptions=False,
        )

    @contextmanager
    def session(self) -> Iterator[LdapSession]:
        """
        Bound session, unbound on exit whatever happens inside.

        Usage:
            with directory.session() as session:
                session.find_by_identifier(...)

        Raises:
            DirectoryUnavailable: Connection or bind failure
        """
        connection = self._connection_factory()
        try:
            try:
                bound = connection.bind()
            except LDAPException as exc:
                raise DirectoryUnavailable(f"cannot reach {self._url}: {exc}") from exc
            if not bound:
                description = (connection.result or {}).get("description")
                raise DirectoryUnavailable(f"bind as {self._bind_dn} failed: {description}")

            yield LdapSession(connection, self._base_dn, self._people_dn, self._clock)
        finally:
            try:
                connection.unbind()
            except LDAPException:
                logger.warning("Unbind from %s failed", self._url, exc_info=True)

    def lookup(self, identifier: str, full_name: str) -> DirectoryLookupOutcome:
        """
        Find who holds an identifier, or the first free username for a name.

        Raises:
            DirectoryError: See LdapSession.find_by_identifier and
                LdapSession.first_available_username
        """
        name = canonicalize(full_name)
        with self.session() as session:
            existing = session.find_by_identifier(identifier)
            if existing is not None:
                logger.info("Identifier %s already registered as %s", identifier, existing)
                return AlreadyRegistered(existing)
            return SlotAvailable(session.first_available_username(name))

    def provision(self, username: str, account: AccountRequest) -> DirectoryAllocation:
        """Allocate ids and add the entry, in one session."""
        with self.session() as session:
            allocation = session.allocate_ids()
            logger.info(
                "Allocated uidNumber=%d rid=%d for %s",
                allocation.uid_number,
                allocation.rid,
                username,
            )
            session.create_account(username, allocation, account, self._defaults)
        return allocation

    def ping(self) -> None:
        """Bind and unbind, raising DirectoryUnavailable on failure."""
        with self.session():
            pass
