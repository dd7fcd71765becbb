"""
Settings for the Square bridge application.
"""

from enum import Enum

from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

SQUARE_VERSION = "2024-08-21"
SQUARE_BASE_URL_SANDBOX = "https://connect.squareupsandbox.com"
SQUARE_BASE_URL_PRODUCTION = "https://connect.squareup.com"
PAYMENTS_PAGE_LIMIT = 100

load_dotenv()


class Environment(str, Enum):
    """
    Square environment the integration talks to.
    """

    SANDBOX = "sandbox"
    PRODUCTION = "production"


class TrackedLocation(BaseModel):
    """A Square location included in the sales reports."""

    id: str
    name: str


DEFAULT_SCOPES = [
    "ITEMS_READ",
    "ITEMS_WRITE",
    "ORDERS_READ",
    "ORDERS_WRITE",
    "PAYMENTS_READ",
    "PAYMENTS_WRITE",
    "MERCHANT_PROFILE_READ",
]

DEFAULT_LOCATIONS = [
    TrackedLocation(id="LFGNGPYT8AT6X", name="Ten1 Tapas"),
    TrackedLocation(id="LGW3DHDSR4NS2", name="Dickens"),
]


class SquareSettings(BaseSettings):
    """
    Settings for the Square API and the credential store.
    """

    square_client_id: str = ""
    square_client_secret: str = ""
    square_redirect_url: str = ""
    environment: Environment = Environment.PRODUCTION
    oauth_scopes: list[str] = DEFAULT_SCOPES
    persist_credential: bool = True
    verify_oauth_state: bool = True
    database_url: str = ""
    tracked_locations: list[TrackedLocation] = DEFAULT_LOCATIONS
    report_window_hours: int = 24
    import_default_days: int = 7
    http_timeout: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def location_ids(self) -> list[str]:
        """Identifiers of the tracked locations, in report order."""
        return [location.id for location in self.tracked_locations]
