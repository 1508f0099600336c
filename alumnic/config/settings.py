"""
Application settings - pydantic-settings configuration.

This module defines application configuration using pydantic-settings
for environment variable loading with validation and defaults.

Nested account defaults are read with a double underscore, e.g.
``ALUMNIC_ACCOUNT__GID_NUMBER=1000``.
"""

from functools import lru_cache

from pydantic import BaseModel, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AccountDefaults(BaseModel):
    """Fixed attribute values stamped on every new student entry."""

    gid_number: str = "1000"
    samba_sid_prefix: str = "S-1-5-21-0000000000-0000000000-0000000000-"
    samba_acct_flags: str = "[UX]"
    samba_lm_password: str = "XXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX"
    samba_password_history: str = "0" * 64
    samba_primary_group_sid: str = "S-1-5-21-0000000000-0000000000-0000000000-513"
    quota: str = "1000"

    home_prefix: str = "/usuarios/alunos/"
    mail_domain: str = "dcc.ufrj.br"
    login_shell: str = "/bin/bash"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="ALUMNIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Directory configuration
    ldap_url: str = "ldap://localhost:389"
    ldap_bind_dn: str = "cn=admin,dc=dcc,dc=ufrj,dc=br"
    ldap_bind_pw: SecretStr = SecretStr("")
    ldap_base_dn: str = "dc=dcc,dc=ufrj,dc=br"
    ldap_people_dn: str = "ou=alunos,ou=academicos,ou=usuarios,dc=dcc,dc=ufrj,dc=br"
    ldap_connect_timeout: float = 5.0  # Seconds to open the TCP connection
    ldap_receive_timeout: float = 10.0  # Seconds to wait for each response

    # Document authentication portal
    portal_form_url: str = (
        "https://gnosys.ufrj.br/Documentos/autenticacao/regularmenteMatriculado"
    )
    portal_submit_url: str = "https://gnosys.ufrj.br/Documentos/autenticacao.seam"
    portal_timeout: float = 15.0
    target_program: str = "Ciência da Computação"

    log_level: str = "INFO"

    account: AccountDefaults = AccountDefaults()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
