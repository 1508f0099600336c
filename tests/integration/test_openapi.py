"""
Integration tests for OpenAPI documentation.

Verifies OpenAPI schema is correctly generated for all endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from alumnic import __version__
from alumnic.api.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client for the application."""
    return TestClient(app)


@pytest.fixture
def schema(client: TestClient) -> dict:
    response = client.get("/openapi.json")
    assert response.status_code == 200
    return response.json()


class TestOpenAPISchema:
    """Tests for OpenAPI schema generation."""

    def test_openapi_title_and_version(self, schema: dict) -> None:
        assert schema["info"]["title"] == "alumnic"
        assert "LDAP" in schema["info"]["description"]
        assert schema["info"]["version"] == __version__

    def test_v1_register_endpoint_in_schema(self, schema: dict) -> None:
        """POST /v1/register endpoint is documented in schema."""
        register = schema["paths"]["/v1/register"]
        assert register["post"]["summary"] == "Register a new student"
        assert {"201", "403", "409", "422", "500", "503"} <= set(register["post"]["responses"])

    def test_register_request_schema(self, schema: dict) -> None:
        """RegisterRequest schema has every form field."""
        props = schema["components"]["schemas"]["RegisterRequest"]["properties"]
        assert set(props) == {"dre", "data", "hora", "codigo", "nome", "email", "telefone", "senha"}
        assert props["senha"]["format"] == "password"

    def test_register_response_schema(self, schema: dict) -> None:
        props = schema["components"]["schemas"]["RegisterResponse"]["properties"]
        assert set(props) == {"message", "username"}

    def test_endpoints_tagged_with_v1(self, schema: dict) -> None:
        assert "v1" in [tag["name"] for tag in schema.get("tags", [])]
        assert "v1" in schema["paths"]["/v1/register"]["post"]["tags"]

    def test_health_endpoint_in_schema(self, schema: dict) -> None:
        assert "get" in schema["paths"]["/health"]


class TestSwaggerUI:
    """Tests for Swagger UI availability."""

    def test_docs_endpoint_accessible(self, client: TestClient) -> None:
        """Swagger UI is accessible at /docs."""
        response = client.get("/docs")
        assert response.status_code == 200
        assert "swagger" in response.text.lower()
