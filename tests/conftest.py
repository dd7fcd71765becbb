"""Shared fixtures for the Square bridge tests."""

from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from square_bridge.core.database import Base
from square_bridge.core.dependencies import (
    get_http_session,
    get_optional_db,
    get_settings,
    get_square_client,
)
from square_bridge.core.main import app
from square_bridge.core.settings import Environment, SquareSettings

from .fakes import FakeHttp


@pytest.fixture
def settings() -> SquareSettings:
    """Settings for testing."""
    return SquareSettings(
        square_client_id="test_client_id",
        square_client_secret="test_client_secret",
        square_redirect_url="https://bridge.example.com/auth/square/callback",
        environment=Environment.PRODUCTION,
        database_url="sqlite://",
    )


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """An in-memory database with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def square_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(
    settings: SquareSettings, db: Session, http: FakeHttp, square_client: MagicMock
) -> Generator[TestClient, None, None]:
    """Test client with settings, store, HTTP session and Square client overridden."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_optional_db] = lambda: db
    app.dependency_overrides[get_http_session] = lambda: http
    app.dependency_overrides[get_square_client] = lambda: square_client
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
