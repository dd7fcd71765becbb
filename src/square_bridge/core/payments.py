"""Square Payments API pagination and per-location aggregation."""

import datetime
import logging
from typing import Any, Iterable, Iterator

import requests

from square_bridge.core.errors import UpstreamError
from square_bridge.core.models import CombinedStats, LocationStats, SalesReport
from square_bridge.core.report import to_iso
from square_bridge.core.settings import PAYMENTS_PAGE_LIMIT, SQUARE_VERSION

logger = logging.getLogger("payments")


def square_headers(access_token: str) -> dict[str, str]:
    """Headers for a raw Square API call on behalf of a merchant."""
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
        "Square-Version": SQUARE_VERSION,
    }


def response_body(response: requests.Response) -> Any:
    """Decode a Square response, falling back to the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text


def iter_payments(
    http: requests.Session,
    api_url: str,
    access_token: str,
    location_id: str,
    begin: datetime.datetime,
    end: datetime.datetime,
    timeout: float | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Yield every payment of a location in [begin, end), newest first.

    Pages are requested one at a time and each page is yielded before the next
    one is requested. The sequence ends once Square stops returning a cursor.

    Raises:
        UpstreamError: On the first page answered with a non-success status.
    """
    params: dict[str, Any] = {
        "location_id": location_id,
        "begin_time": to_iso(begin),
        "end_time": to_iso(end),
        "sort_order": "DESC",
        "limit": PAYMENTS_PAGE_LIMIT,
    }
    cursor: str | None = None
    page = 0

    while True:
        if cursor:
            params["cursor"] = cursor
        page += 1
        logger.debug("Fetching payments page %s for location %s", page, location_id)
        response = http.get(
            f"{api_url}/payments",
            params=dict(params),
            headers=square_headers(access_token),
            timeout=timeout,
        )
        body = response_body(response)

        if not response.ok:
            logger.error(
                "Square Payments API error for location %s: %s", location_id, response.status_code
            )
            raise UpstreamError(
                "Square Payments API error",
                status_code=response.status_code,
                body=body,
                location_id=location_id,
            )

        yield from body.get("payments") or []

        cursor = body.get("cursor")
        if not cursor:
            return


def aggregate_location(location_id: str, payments: Iterable[dict[str, Any]]) -> LocationStats:
    """
    Fold a location's payments into its stats.

    Only COMPLETED payments count. Each amount lands in exactly one bucket:
    card when card details are present, else cash when cash details are
    present, else other. The stats are returned only once the payments are
    exhausted, so a failing fetch never yields partial stats.
    """
    stats = LocationStats(location_id=location_id)

    for payment in payments:
        if payment.get("status") != "COMPLETED":
            continue
        amount = (payment.get("amount_money") or {}).get("amount") or 0
        stats.total_cents += amount
        stats.count += 1

        if payment.get("card_details") is not None:
            stats.card_cents += amount
        elif payment.get("cash_details") is not None:
            stats.cash_cents += amount
        else:
            stats.other_cents += amount

    return stats


def combine(per_location: Iterable[LocationStats]) -> CombinedStats:
    """Element-wise sum of location stats."""
    combined = CombinedStats()
    for stats in per_location:
        combined.total_cents += stats.total_cents
        combined.card_cents += stats.card_cents
        combined.cash_cents += stats.cash_cents
        combined.other_cents += stats.other_cents
        combined.count += stats.count
    return combined


def collect_sales(
    http: requests.Session,
    api_url: str,
    access_token: str,
    location_ids: list[str],
    begin: datetime.datetime,
    end: datetime.datetime,
    timeout: float | None = None,
) -> SalesReport:
    """
    Aggregate the payments of every location, one location at a time.

    Raises:
        UpstreamError: If any page of any location fails; nothing is returned.
    """
    per_location = []
    for location_id in location_ids:
        payments = iter_payments(http, api_url, access_token, location_id, begin, end, timeout)
        stats = aggregate_location(location_id, payments)
        logger.info(
            "Location %s: %s completed payments, %s cents",
            location_id,
            stats.count,
            stats.total_cents,
        )
        per_location.append(stats)

    return SalesReport(combined=combine(per_location), per_location=per_location)
