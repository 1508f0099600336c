"""Directory adapters - LDAP implementations."""

from .ldap import LdapDirectory, LdapSession

__all__ = ["LdapDirectory", "LdapSession"]
