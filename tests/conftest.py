"""
Shared pytest fixtures for Credential Gateway tests.

Every test gets its own SQLite file under tmp_path, so tests never share
accounts and never touch the developer's ./credential_gateway.sqlite.
"""

import os
import sys
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from credential_gateway.api.server import create_app
from credential_gateway.auth.crud import SqlUserStore
from credential_gateway.auth.gateway import CredentialGateway
from credential_gateway.config import Config
from credential_gateway.db import init_db

TEST_SECRET = "test-secret-do-not-use"


@pytest.fixture
def db_dsn(tmp_path):
    dsn = str(tmp_path / "gateway.sqlite")
    init_db(dsn)
    return dsn


@pytest.fixture
def cfg(db_dsn):
    return Config(
        DB_DSN=db_dsn,
        ENVIRONMENT="development",
        PRODUCTION=False,
        TOKEN_SECRET=TEST_SECRET,
        AUTH_COOKIE_DOMAIN=None,
        AUTH_COOKIE_PATH="/",
        CORS_ALLOW_ORIGINS="",
    )


@pytest.fixture
def prod_cfg(cfg):
    return replace(cfg, ENVIRONMENT="production", PRODUCTION=True)


@pytest.fixture
def store(db_dsn):
    return SqlUserStore(db_dsn)


@pytest.fixture
def gateway(cfg, store):
    return CredentialGateway(cfg, store)


@pytest.fixture
def client(cfg):
    with TestClient(create_app(cfg)) as c:
        yield c


@pytest.fixture
def alice():
    return {"email": "alice@acme.io", "password": "correct horse", "username": "alice"}
