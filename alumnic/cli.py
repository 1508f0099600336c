"""
Administrative command line.

Usage:
    alumnic check-document DRE DATA HORA CODIGO   # Authenticate a document
    alumnic lookup DRE NOME                       # Who holds a DRE, or next free username
    alumnic create-account USERNAME DRE NOME EMAIL TELEFONE
                                                  # Create an account, no document check
    alumnic serve [--host HOST] [--port PORT]     # Run the registration API

Settings come from ALUMNIC_* environment variables or a .env file.
"""

import argparse
import asyncio
import getpass
import logging
import sys

from pydantic import SecretStr

from alumnic.adapters.directory.ldap import LdapDirectory
from alumnic.adapters.portal.gnosys import GnosysVerifier
from alumnic.api.dependencies import build_registration_service
from alumnic.config.settings import Settings, get_settings
from alumnic.domain.exceptions import DirectoryError, PortalError, RegistrationError
from alumnic.domain.ports import (
    AlreadyRegistered,
    DocumentCredentials,
    EnrolledStudent,
    OtherProgramStudent,
)
from alumnic.domain.validation import (
    validate_date,
    validate_identifier,
    validate_name,
    validate_signature_code,
    validate_time,
)

logger = logging.getLogger(__name__)


def cmd_check_document(args: argparse.Namespace, settings: Settings) -> int:
    """Authenticate an enrollment document at the portal."""
    credentials = DocumentCredentials(
        identifier=validate_identifier(args.dre),
        issue_date=validate_date(args.data),
        issue_time=validate_time(args.hora),
        signature_code=validate_signature_code(args.codigo),
    )
    outcome = asyncio.run(GnosysVerifier.from_settings(settings).verify(credentials))

    if isinstance(outcome, EnrolledStudent):
        print(f"Documento válido: {outcome.official_name}, {settings.target_program}")
        return 0
    if isinstance(outcome, OtherProgramStudent):
        print(f"Documento válido: {outcome.official_name}, {outcome.program}")
        return 0
    print("Documento inválido")
    return 1


def cmd_lookup(args: argparse.Namespace, settings: Settings) -> int:
    """Show who holds a DRE, or which username a new account would get."""
    identifier = validate_identifier(args.dre)
    outcome = LdapDirectory.from_settings(settings).lookup(identifier, validate_name(args.nome))

    if isinstance(outcome, AlreadyRegistered):
        print(f"{identifier} já cadastrado como {outcome.username}")
    else:
        print(f"{identifier} livre, username {outcome.username}")
    return 0


def _read_password() -> SecretStr:
    first = getpass.getpass("Senha: ")
    second = getpass.getpass("Confirme a senha: ")
    if first != second:
        raise SystemExit("As senhas não conferem")
    return SecretStr(first)


def cmd_create_account(args: argparse.Namespace, settings: Settings) -> int:
    """Create an account under a chosen username."""
    password = _read_password()
    service = build_registration_service(settings)
    username = asyncio.run(
        service.create_account(
            username=args.username,
            identifier=args.dre,
            full_name=args.nome,
            email=args.email,
            phone=args.telefone,
            password=password,
        )
    )
    print(f"Conta {username} criada")
    return 0


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    """Run the registration API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "alumnic.api.main:app",
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="alumnic", description="Student account provisioning")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check-document", help="Authenticate an enrollment document")
    check.add_argument("dre")
    check.add_argument("data")
    check.add_argument("hora")
    check.add_argument("codigo")
    check.set_defaults(handler=cmd_check_document)

    lookup = subparsers.add_parser("lookup", help="Find a DRE or the next free username")
    lookup.add_argument("dre")
    lookup.add_argument("nome")
    lookup.set_defaults(handler=cmd_lookup)

    create = subparsers.add_parser("create-account", help="Create an account without document check")
    create.add_argument("username")
    create.add_argument("dre")
    create.add_argument("nome")
    create.add_argument("email")
    create.add_argument("telefone")
    create.set_defaults(handler=cmd_create_account)

    serve = subparsers.add_parser("serve", help="Run the registration API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(handler=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.handler(args, settings)
    except RegistrationError as exc:
        print(f"Erro: {exc}", file=sys.stderr)
        return 2
    except (PortalError, DirectoryError) as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 3


if __name__ == "__main__":
    sys.exit(main())
