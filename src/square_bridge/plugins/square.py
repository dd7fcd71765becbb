"""Square plugin module.

This module provides the HTTP endpoints of the Square integration: the OAuth
connect and callback pair that stores merchant credentials, the sales summary
and daily report built from the Payments API, the orders import, and a
connectivity smoke test.
"""

import datetime
import logging
import secrets
from typing import Any
from urllib.parse import urlencode

import requests
from fastapi import APIRouter, Cookie, Depends, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from square.client import Client

from square_bridge.core.dependencies import (
    create_square_client,
    get_db,
    get_http_session,
    get_optional_db,
    get_settings,
    get_square_api_url,
    get_square_base_url,
    get_square_client,
)
from square_bridge.core.errors import (
    InvalidInputError,
    MissingConfigurationError,
    UpstreamError,
)
from square_bridge.core.models import DailyReport, ImportSummary, OAuthResult, SalesSummary
from square_bridge.core.orders import import_orders, iter_orders, parse_days
from square_bridge.core.payments import collect_sales
from square_bridge.core.report import (
    build_summary,
    last_hours_range,
    range_info,
    render_daily_report,
    to_iso,
)
from square_bridge.core.settings import SquareSettings
from square_bridge.core.token_store import get_latest_token, save_token

# Setup module-level logger
logger = logging.getLogger("square")

OAUTH_STATE_COOKIE = "square_oauth_state"
OAUTH_STATE_MAX_AGE = 600

auth_router = APIRouter(prefix="/auth/square", tags=["oauth"])
router = APIRouter(prefix="/square", tags=["square"])


@auth_router.get("/connect")
def initiate_oauth(settings: SquareSettings = Depends(get_settings)) -> RedirectResponse:
    """
    Initiate the OAuth flow.

    Issues a random `state`, keeps it in an HTTP-only cookie for the callback
    to verify, and redirects the browser to Square's authorization screen.
    """
    if not settings.square_client_id or not settings.square_redirect_url:
        raise MissingConfigurationError.for_values(
            "Missing Square env vars",
            square_client_id=settings.square_client_id,
            square_redirect_url=settings.square_redirect_url,
        )

    state = secrets.token_urlsafe(16)
    params = {
        "client_id": settings.square_client_id,
        "scope": " ".join(settings.oauth_scopes),
        "session": "false",
        "state": state,
        "redirect_uri": settings.square_redirect_url,
    }
    oauth_url = f"{get_square_base_url(settings)}/oauth2/authorize?{urlencode(params)}"
    logger.info("Redirecting to Square OAuth with scopes: %s", params["scope"])

    response = RedirectResponse(oauth_url)
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        secure=settings.square_redirect_url.startswith("https"),
        samesite="lax",
    )
    return response


def verify_state(state: str | None, expected: str | None) -> None:
    """Check the callback `state` against the one issued by the connect endpoint."""
    # compare_digest only accepts ASCII str, compare the UTF-8 bytes
    if not state or not expected:
        matches = False
    else:
        matches = secrets.compare_digest(state.encode(), expected.encode())
    if not matches:
        raise InvalidInputError(
            'Invalid OAuth "state" parameter',
            details="state does not match the one issued by /auth/square/connect",
        )


@auth_router.get("/callback", response_model=OAuthResult, response_model_exclude_none=True)
def oauth_callback(
    response: Response,
    code: str | None = None,
    state: str | None = None,
    square_oauth_state: str | None = Cookie(default=None),
    settings: SquareSettings = Depends(get_settings),
    client: Client = Depends(get_square_client),
    db: Session | None = Depends(get_optional_db),
) -> OAuthResult:
    """
    Handle the OAuth callback from Square.

    - Verifies the `state` issued by the connect endpoint
    - Exchanges the authorization code for tokens
    - Upserts the tokens keyed by merchant id when persistence is enabled

    Args:
        response (Response): Outgoing response, used to clear the state cookie.
        code (str | None): The authorization code from Square.
        state (str | None): The state parameter echoed back by Square.
        square_oauth_state (str | None): The state stored by the connect endpoint.
        settings (SquareSettings): Application settings.
        client (Client): Square client for the OAuth API.
        db (Session | None): The database session, None when no database is configured.
    """
    if not code:
        raise InvalidInputError('Missing "code" from Square OAuth callback')

    if settings.verify_oauth_state:
        verify_state(state, square_oauth_state)
    response.delete_cookie(OAUTH_STATE_COOKIE)

    if (
        not settings.square_client_id
        or not settings.square_client_secret
        or not settings.square_redirect_url
    ):
        raise MissingConfigurationError.for_values(
            "Missing Square env vars",
            square_client_id=settings.square_client_id,
            square_client_secret=settings.square_client_secret,
            square_redirect_url=settings.square_redirect_url,
        )

    logger.info("OAuth callback received: code=%s...", code[:5])
    result = client.o_auth.obtain_token(
        body={
            "client_id": settings.square_client_id,
            "client_secret": settings.square_client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": settings.square_redirect_url,
        }
    )

    if not result.is_success() or result.body.get("errors"):
        logger.error("Error obtaining token from Square API: %s", result.errors)
        raise UpstreamError("Failed to exchange code for token", status_code=500, body=result.body)

    tokens = dict(result.body)
    logger.info("Successfully obtained token for merchant: %s", tokens.get("merchant_id"))

    if not settings.persist_credential:
        return OAuthResult(message="Square OAuth successful (tokens not persisted)", tokens=tokens)
    if db is None:
        logger.warning("Database not configured, tokens were not stored")
        return OAuthResult(
            message="Square OAuth successful (database not configured)", tokens=tokens
        )

    save_token(db, tokens)
    return OAuthResult(message="Square OAuth successful", tokens=tokens, persisted=True)


def _report_window(settings: SquareSettings) -> tuple[datetime.datetime, datetime.datetime]:
    return last_hours_range(settings.report_window_hours)


@router.get("/sales-summary", response_model=SalesSummary)
def sales_summary(
    settings: SquareSettings = Depends(get_settings),
    db: Session = Depends(get_db),
    http: requests.Session = Depends(get_http_session),
) -> SalesSummary:
    """Totals of the last 24 hours of payments, combined and per location."""
    token = get_latest_token(db)
    begin, end = _report_window(settings)

    report = collect_sales(
        http,
        get_square_api_url(settings),
        token.access_token,
        settings.location_ids,
        begin,
        end,
        settings.http_timeout,
    )
    return build_summary(report, range_info(settings.report_window_hours, begin, end))


@router.get("/daily-report", response_model=DailyReport)
def daily_report(
    settings: SquareSettings = Depends(get_settings),
    db: Session = Depends(get_db),
    http: requests.Session = Depends(get_http_session),
) -> DailyReport:
    """The sales summary rendered as a human-readable text report."""
    token = get_latest_token(db)
    begin, end = _report_window(settings)

    report = collect_sales(
        http,
        get_square_api_url(settings),
        token.access_token,
        settings.location_ids,
        begin,
        end,
        settings.http_timeout,
    )
    info = range_info(settings.report_window_hours, begin, end)
    text = render_daily_report(
        report, settings.tracked_locations, info, settings.report_window_hours
    )
    return DailyReport(range=info, report=text)


@router.get("/import-sales", response_model=ImportSummary, response_model_by_alias=True)
def import_sales(
    days: str | None = None,
    settings: SquareSettings = Depends(get_settings),
    db: Session = Depends(get_db),
    http: requests.Session = Depends(get_http_session),
) -> ImportSummary:
    """Import the completed orders of the last `days` days (default 7)."""
    window = parse_days(days, settings.import_default_days)
    token = get_latest_token(db)

    end = datetime.datetime.now(datetime.timezone.utc)
    start = end - datetime.timedelta(days=window)

    orders = iter_orders(
        http,
        get_square_api_url(settings),
        token.access_token,
        settings.location_ids,
        start,
        end,
        settings.http_timeout,
    )
    imported_orders, imported_items = import_orders(db, orders, token.merchant_id)
    logger.info("Imported %s orders and %s items", imported_orders, imported_items)

    return ImportSummary(
        imported_orders=imported_orders,
        imported_items=imported_items,
        from_=to_iso(start),
        to=to_iso(end),
        days=window,
    )


@router.get("/test")
def smoke_test(
    settings: SquareSettings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> dict:
    """Smoke test: fetch the merchant behind the stored token."""
    token = get_latest_token(db)
    merchant_client = create_square_client(settings, token.access_token)
    return get_merchant_info(merchant_client)


def get_merchant_info(client: Client) -> dict[str, Any]:
    """
    Retrieves the merchant behind the client's token from the Square API.

    Args:
        client (Client): Square client for authenticating requests.

    Returns:
        dict[str, Any]: The response body as provided by Square.

    Raises:
        UpstreamError: If the API request fails.
    """
    response = client.merchants.retrieve_merchant(merchant_id="me")

    if response.is_success():
        logger.info("Merchant info fetched: %s", response.body.get("merchant", {}).get("id"))
        return dict(response.body)

    logger.error("Error fetching merchant info: %s", response.errors)
    raise UpstreamError(
        "Square API returned an error", status_code=response.status_code, body=response.body
    )
