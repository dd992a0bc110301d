from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from userapi.api import create_app
from userapi.config import Settings
from userapi.store import UserStore
from userapi.tokens import TokenService

TEST_SECRET = "tests-only-signing-secret-0123456789abcdef"
USERNAME = "admin"
PASSWORD = "password123"


@pytest.fixture()
def settings() -> Settings:
    return Settings(jwt_secret=TEST_SECRET)


@pytest.fixture()
def store() -> UserStore:
    return UserStore()


@pytest.fixture()
def tokens(settings: Settings) -> TokenService:
    return TokenService.from_settings(settings)


@pytest.fixture()
def app(settings: Settings, store: UserStore, tokens: TokenService) -> FastAPI:
    return create_app(settings=settings, store=store, tokens=tokens)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def auth_headers(tokens: TokenService) -> Dict[str, str]:
    issued = tokens.issue(USERNAME)
    return {"Authorization": f"Bearer {issued.token}"}
