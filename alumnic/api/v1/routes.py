"""
API v1 routes.

Defines the REST endpoint for student registration and the mapping from
domain failures to HTTP responses:

- 422: malformed field, weak password, name differs from the records
- 403: document not authenticated, or student of another program
- 409: the student already has an account
- 503: transient directory contention, safe to resubmit
- 500: portal or directory failure (operators are alerted via logs)

User-facing messages are in Portuguese; internal details only go to logs.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from alumnic.api.dependencies import get_registration_service
from alumnic.api.models import ErrorResponse, RegisterRequest, RegisterResponse
from alumnic.domain.exceptions import (
    DirectoryError,
    DocumentInvalid,
    DuplicateRegistration,
    InvalidField,
    NameMismatch,
    PortalError,
    RegistrationError,
    WeakSecret,
    WrongProgram,
)
from alumnic.domain.registration import RegistrationService
from alumnic.domain.validation import PASSWORD_POLICY

logger = logging.getLogger(__name__)

router = APIRouter(tags=["v1"])

# Starlette renamed HTTP_422_UNPROCESSABLE_ENTITY to HTTP_422_UNPROCESSABLE_CONTENT
HTTP_422 = 422


def _http_error(exc: Exception) -> HTTPException:
    """Translate a domain failure into the response the student sees."""
    if isinstance(exc, InvalidField):
        return HTTPException(
            status_code=HTTP_422,
            detail=f"O campo {exc.field} não é válido",
        )
    if isinstance(exc, WeakSecret):
        return HTTPException(
            status_code=HTTP_422,
            detail=(
                f"A senha precisa ter entre {PASSWORD_POLICY.min_length} e "
                f"{PASSWORD_POLICY.max_length} caracteres, uma letra minúscula, "
                "uma maiúscula e um dígito"
            ),
        )
    if isinstance(exc, NameMismatch):
        return HTTPException(
            status_code=HTTP_422,
            detail=f"O nome informado {exc.reported!r} não é o mesmo do SIGA {exc.official!r}",
        )
    if isinstance(exc, DocumentInvalid):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Seu documento de matrícula é inválido",
        )
    if isinstance(exc, WrongProgram):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Alunos de {exc.program} não têm direito à conta do IC",
        )
    if isinstance(exc, DuplicateRegistration):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"O cadastro já existe, com o username {exc.username!r}",
        )

    if getattr(exc, "retryable", False):
        logger.warning("Transient failure, client may retry: %r", exc)
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="O cadastro não pôde ser concluído agora, tente novamente",
        )

    logger.error("Registration failed: %r", exc, exc_info=exc)
    if isinstance(exc, PortalError):
        detail = "Não foi possível obter informações do SIGA"
    else:
        detail = "Houve um problema ao verificar o estado do cadastro no LDAP"
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse, "description": "Document invalid or other program"},
        409: {"model": ErrorResponse, "description": "Student already registered"},
        422: {"model": ErrorResponse, "description": "Validation error"},
        500: {"model": ErrorResponse, "description": "Portal or directory failure"},
        503: {"model": ErrorResponse, "description": "Transient conflict, retry"},
    },
    summary="Register a new student",
    description="Submit the fields of the 'Regularmente Matriculado' document and the "
    "account details. The document is authenticated at the portal and, if the "
    "student is entitled to an account, it is created in the directory.",
)
async def register(
    request_data: RegisterRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> RegisterResponse:
    """
    Register a student and create the directory account.

    Returns the username assigned to the new account.
    """
    try:
        username = await service.register(request_data.to_form())
    except (RegistrationError, PortalError, DirectoryError) as exc:
        raise _http_error(exc) from None
    return RegisterResponse(message="Conta criada", username=username)
