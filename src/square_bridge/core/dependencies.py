"""
FastAPI dependencies for the Square bridge.
"""

import logging
from functools import lru_cache
from typing import Generator

import requests
from fastapi import Depends
from sqlalchemy.orm import Session
from square.client import Client
from square.http.auth.o_auth_2 import BearerAuthCredentials

from .database import get_session_factory
from .errors import MissingConfigurationError
from .settings import (
    SQUARE_BASE_URL_PRODUCTION,
    SQUARE_BASE_URL_SANDBOX,
    SQUARE_VERSION,
    Environment,
    SquareSettings,
)

# Setup logger
logger = logging.getLogger("dependencies")


@lru_cache()
def get_settings() -> SquareSettings:
    """
    Get the settings for the Square bridge.
    """
    settings = SquareSettings()  # Reads Square-related vars from .env
    logger.info("get_settings returning SquareSettings with environment: %s", settings.environment)
    return settings


def get_square_base_url(settings: SquareSettings) -> str:
    """
    Returns the Square base URL depending on the environment.
    """
    base_urls = {
        Environment.SANDBOX: SQUARE_BASE_URL_SANDBOX,
        Environment.PRODUCTION: SQUARE_BASE_URL_PRODUCTION,
    }

    try:
        return base_urls[settings.environment]
    except KeyError as e:
        raise ValueError(f"Invalid environment: {settings.environment}") from e


def get_square_api_url(settings: SquareSettings) -> str:
    """
    Returns the Square API URL depending on the environment.
    """
    return f"{get_square_base_url(settings)}/v2"


def create_square_client(settings: SquareSettings, access_token: str | None = None) -> Client:
    """
    Build a Square SDK client, optionally authenticated with a merchant token.
    """
    logger.info("Creating Square client with environment: %s", settings.environment.value)
    if access_token is None:
        return Client(environment=settings.environment.value, square_version=SQUARE_VERSION)
    return Client(
        bearer_auth_credentials=BearerAuthCredentials(access_token=access_token),
        environment=settings.environment.value,
        square_version=SQUARE_VERSION,
    )


def get_square_client(settings: SquareSettings = Depends(get_settings)) -> Client:
    """
    Injection method to get the Square client used for the OAuth API.
    """
    return create_square_client(settings)


def get_http_session() -> Generator[requests.Session, None, None]:
    """Dependency to get an HTTP session for raw Square API calls."""
    session = requests.Session()
    try:
        yield session
    finally:
        session.close()


def get_optional_db(
    settings: SquareSettings = Depends(get_settings),
) -> Generator[Session | None, None, None]:
    """Dependency to get a database session, or None when no database is configured."""
    if not settings.database_url:
        yield None
        return

    db = get_session_factory(settings.database_url)()
    try:
        yield db
    finally:
        db.close()


def get_db(db: Session | None = Depends(get_optional_db)) -> Session:
    """Dependency to get a database session, failing when no database is configured."""
    if db is None:
        raise MissingConfigurationError.for_values("Database not configured", database_url="")
    return db
