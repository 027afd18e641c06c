"""
Shared pytest fixtures for the shell registry tests.

This module provides:
- Deterministic settings loaded from configs/registry.yaml
- A fresh in-memory SQLite database per test
- A FastAPI TestClient bound to that database
- Bearer tokens minted with PyJWT carrying registry roles

Usage:
    def test_something(client, auth_headers):
        response = client.get("/api/v3/shell-descriptors", headers=auth_headers("BPNL_A"))
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Generator, Optional, Sequence

# Must be set before auth.auth_manager is imported anywhere
os.environ["JWT_SECRET"] = "registry-test-secret-0123456789-abcdef"
os.environ.pop("JWT_AUDIENCE", None)

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from registry.config import DEFAULT_CONFIG_PATH, RegistrySettings, reload_settings
from registry.database import IN_MEMORY_SQLITE, DatabaseConfig, DatabaseManager
from security.policy.rbac import Roles

TENANT_A = "BPNL00000000000A"
TENANT_B = "BPNL00000000000B"
TENANT_C = "BPNL00000000000C"

ALL_ROLES = (Roles.VIEW, Roles.ADD, Roles.UPDATE, Roles.DELETE)

_REGISTRY_ENV = (
    "REGISTRY_CONFIG_PATH",
    "REGISTRY_OWNING_TENANT_ID",
    "REGISTRY_TENANT_HEADER",
    "REGISTRY_PUBLIC_WILDCARD",
    "REGISTRY_PUBLIC_ALLOWED_TYPES",
    "AUTH_CLIENT_ID",
)


def make_token(
    roles: Sequence[str] = ALL_ROLES,
    client_id: str = "digital-twin-registry",
    secret: Optional[str] = None,
    expires_in: timedelta = timedelta(minutes=5),
) -> str:
    payload = {
        "sub": "registry-test-client",
        "exp": datetime.now(timezone.utc) + expires_in,
        "resource_access": {client_id: {"roles": list(roles)}},
    }
    return jwt.encode(payload, secret or os.environ["JWT_SECRET"], algorithm="HS256")


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def settings(monkeypatch) -> Generator[RegistrySettings, None, None]:
    """Settings from the bundled YAML, unaffected by the developer's environment."""
    for name in _REGISTRY_ENV:
        monkeypatch.delenv(name, raising=False)
    yield reload_settings(str(DEFAULT_CONFIG_PATH))
    monkeypatch.undo()
    reload_settings(str(DEFAULT_CONFIG_PATH))


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def database() -> Generator[None, None, None]:
    DatabaseManager.dispose()
    DatabaseManager.initialize(DatabaseConfig(IN_MEMORY_SQLITE))
    yield
    DatabaseManager.drop_tables()
    DatabaseManager.dispose()


@pytest.fixture
def db_session(database) -> Generator[Session, None, None]:
    sessions = DatabaseManager.get_session()
    session = next(sessions)
    yield session
    sessions.close()


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def client(database) -> TestClient:
    from apps.api.main import app

    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Factory: headers for a tenant (None = no tenant header) holding some roles."""
    def _headers(tenant: Optional[str] = None, roles: Sequence[str] = ALL_ROLES) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {make_token(roles)}"}
        if tenant is not None:
            headers["Edc-Bpn"] = tenant
        return headers

    return _headers
