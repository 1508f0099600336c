"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- An in-memory directory server behind fake ldap3 connections
- LdapDirectory instances wired to it with a fixed clock
- A raw registration form, typed the way students type it
"""

from collections.abc import Callable

import pytest
from pydantic import SecretStr

from alumnic.adapters.directory.ldap import LdapDirectory
from alumnic.config.settings import AccountDefaults
from alumnic.domain.ports import RegistrationForm
from ldap_fakes import BASE_DN, FIXED_NOW, PEOPLE_DN, FakeConnection, FakeLdapServer


@pytest.fixture
def ldap_server() -> FakeLdapServer:
    """Fresh in-memory directory holding only the counter entry."""
    return FakeLdapServer()


@pytest.fixture
def account_defaults() -> AccountDefaults:
    return AccountDefaults(
        samba_sid_prefix="S-1-5-21-1-2-3-",
        samba_primary_group_sid="S-1-5-21-1-2-3-513",
    )


@pytest.fixture
def make_directory(
    ldap_server: FakeLdapServer, account_defaults: AccountDefaults
) -> Callable[..., LdapDirectory]:
    """Factory for LdapDirectory instances talking to ldap_server."""

    def factory(connection_factory: Callable[[], object] | None = None) -> LdapDirectory:
        return LdapDirectory(
            url="ldap://directory.test",
            bind_dn=f"cn=admin,{BASE_DN}",
            bind_password=SecretStr("admin-secret"),
            base_dn=BASE_DN,
            people_dn=PEOPLE_DN,
            defaults=account_defaults,
            connection_factory=connection_factory or (lambda: FakeConnection(ldap_server)),
            clock=lambda: FIXED_NOW,
        )

    return factory


@pytest.fixture
def directory(make_directory: Callable[..., LdapDirectory]) -> LdapDirectory:
    return make_directory()


@pytest.fixture
def registration_form() -> RegistrationForm:
    """A well-formed form, typed the way students type it."""
    return RegistrationForm(
        identifier=" 118012345 ",
        issue_date="1/3/24",
        issue_time="9:05",
        signature_code="ABCD.1234.EF56.7890.ABCD.1234.EF56.7890",
        full_name="joão carlos  pereira silva",
        email="Joao.Silva@Exemplo.COM",
        phone="(021) 98765-4321",
        password=SecretStr("Segredo123"),
    )
