"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Field names follow the registration form of the web front end.
"""

from pydantic import BaseModel, Field, SecretStr

from alumnic.domain.ports import RegistrationForm


class RegisterRequest(BaseModel):
    """Request model for student registration."""

    dre: str = Field(..., description="Enrollment identifier, 9 digits")
    data: str = Field(..., description="Document issue date, e.g. 25/12/2025")
    hora: str = Field(..., description="Document issue time, e.g. 23:59")
    codigo: str = Field(
        ...,
        description="Document signature, XXXX.XXXX.XXXX.XXXX.XXXX.XXXX.XXXX.XXXX",
    )
    nome: str = Field(..., description="Full name, as in the academic records")
    email: str = Field(..., description="External email address")
    telefone: str = Field(..., description="Brazilian phone number")
    senha: SecretStr = Field(..., description="Password for the new account")

    def to_form(self) -> RegistrationForm:
        """Hand the raw fields to the domain, which does all validation."""
        return RegistrationForm(
            identifier=self.dre,
            issue_date=self.data,
            issue_time=self.hora,
            signature_code=self.codigo,
            full_name=self.nome,
            email=self.email,
            phone=self.telefone,
            password=self.senha,
        )


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    message: str
    username: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
