"""alumnic - Student account provisioning for the institute's LDAP directory."""

__version__ = "0.1.0"
