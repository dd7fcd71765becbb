"""Test the Payments API pagination and the per-location aggregation."""

import datetime

import pytest

from square_bridge.core.errors import UpstreamError
from square_bridge.core.models import LocationStats
from square_bridge.core.payments import aggregate_location, collect_sales, combine, iter_payments
from square_bridge.core.settings import SQUARE_VERSION

from .fakes import FakeHttp, FakeResponse

API_URL = "https://connect.squareup.com/v2"
BEGIN = datetime.datetime(2024, 5, 1, 10, 0, tzinfo=datetime.timezone.utc)
END = datetime.datetime(2024, 5, 2, 10, 0, tzinfo=datetime.timezone.utc)


def payment(amount: int, method: str = "card", status: str = "COMPLETED") -> dict:
    """Build a Square payment record."""
    record: dict = {"id": f"p-{amount}", "status": status, "amount_money": {"amount": amount}}
    if method == "card":
        record["card_details"] = {"status": "CAPTURED"}
    elif method == "cash":
        record["cash_details"] = {"buyer_supplied_money": {"amount": amount}}
    return record


def test_iter_payments_follows_cursor_until_exhausted() -> None:
    """Three pages are requested in order, each with the previous page's cursor."""
    http = FakeHttp(
        [
            FakeResponse(200, {"payments": [payment(100)], "cursor": "c1"}),
            FakeResponse(200, {"payments": [payment(200)], "cursor": "c2"}),
            FakeResponse(200, {"payments": [payment(300)]}),
        ]
    )

    payments = list(iter_payments(http, API_URL, "tok", "LOC1", BEGIN, END))

    assert [p["amount_money"]["amount"] for p in payments] == [100, 200, 300]
    assert len(http.calls) == 3
    assert [call["params"].get("cursor") for call in http.calls] == [None, "c1", "c2"]

    first = http.calls[0]
    assert first["url"] == f"{API_URL}/payments"
    assert first["params"] == {
        "location_id": "LOC1",
        "begin_time": "2024-05-01T10:00:00.000Z",
        "end_time": "2024-05-02T10:00:00.000Z",
        "sort_order": "DESC",
        "limit": 100,
    }
    assert first["headers"]["Authorization"] == "Bearer tok"
    assert first["headers"]["Square-Version"] == SQUARE_VERSION


def test_iter_payments_is_lazy() -> None:
    """A page is only requested once the previous one has been consumed."""
    http = FakeHttp(
        [
            FakeResponse(200, {"payments": [payment(100)], "cursor": "c1"}),
            FakeResponse(200, {"payments": [payment(200)]}),
        ]
    )

    payments = iter_payments(http, API_URL, "tok", "LOC1", BEGIN, END)
    assert http.calls == []

    next(payments)
    assert len(http.calls) == 1

    next(payments)
    assert len(http.calls) == 2


def test_iter_payments_handles_empty_page() -> None:
    http = FakeHttp([FakeResponse(200, {})])

    assert list(iter_payments(http, API_URL, "tok", "LOC1", BEGIN, END)) == []
    assert len(http.calls) == 1


def test_iter_payments_raises_upstream_error_verbatim() -> None:
    """A failing second page surfaces its status and body."""
    error_body = {"errors": [{"code": "RATE_LIMITED", "category": "RATE_LIMIT_ERROR"}]}
    http = FakeHttp(
        [
            FakeResponse(200, {"payments": [payment(100)], "cursor": "c1"}),
            FakeResponse(429, error_body),
        ]
    )

    with pytest.raises(UpstreamError) as exc_info:
        list(iter_payments(http, API_URL, "tok", "LOC1", BEGIN, END))

    assert exc_info.value.status_code == 429
    assert exc_info.value.body == error_body
    assert exc_info.value.location_id == "LOC1"


def test_aggregate_location_scenario() -> None:
    """Two card payments and one cash payment."""
    stats = aggregate_location("LOC1", [payment(500), payment(300), payment(200, "cash")])

    assert stats == LocationStats(
        location_id="LOC1",
        total_cents=1000,
        card_cents=800,
        cash_cents=200,
        other_cents=0,
        count=3,
    )


def test_aggregate_location_skips_non_completed() -> None:
    records = [
        payment(500),
        payment(700, status="FAILED"),
        payment(900, "cash", status="CANCELED"),
        payment(1100, "other", status="APPROVED"),
    ]

    stats = aggregate_location("LOC1", records)

    assert stats.total_cents == 500
    assert stats.card_cents == 500
    assert stats.count == 1


def test_aggregate_location_buckets_always_sum_to_total() -> None:
    records = [
        payment(125),
        payment(250, "cash"),
        payment(375, "other"),
        # Card details win over cash details, even when empty
        {
            "status": "COMPLETED",
            "card_details": {},
            "cash_details": {"x": 1},
            "amount_money": {"amount": 10},
        },
        {
            "status": "COMPLETED",
            "card_details": {"x": 1},
            "cash_details": {"x": 1},
            "amount_money": {"amount": 20},
        },
        {"status": "COMPLETED"},
    ]

    stats = aggregate_location("LOC1", records)

    assert stats.card_cents + stats.cash_cents + stats.other_cents == stats.total_cents
    assert stats.card_cents == 155
    assert stats.cash_cents == 250
    assert stats.other_cents == 375
    assert stats.count == 6


def test_combine_is_element_wise_sum() -> None:
    first = LocationStats(
        location_id="A", total_cents=1000, card_cents=800, cash_cents=200, count=3
    )
    second = LocationStats(
        location_id="B", total_cents=450, card_cents=100, other_cents=350, count=2
    )

    combined = combine([first, second])

    assert combined.total_cents == 1450
    assert combined.card_cents == 900
    assert combined.cash_cents == 200
    assert combined.other_cents == 350
    assert combined.count == 5


def test_collect_sales_processes_locations_in_order() -> None:
    http = FakeHttp(
        [
            FakeResponse(200, {"payments": [payment(500), payment(300), payment(200, "cash")]}),
            FakeResponse(200, {"payments": [payment(1000, "other")]}),
        ]
    )

    report = collect_sales(http, API_URL, "tok", ["A", "B"], BEGIN, END)

    assert [call["params"]["location_id"] for call in http.calls] == ["A", "B"]
    assert [stats.location_id for stats in report.per_location] == ["A", "B"]
    assert report.combined.total_cents == 2000
    assert report.combined.other_cents == 1000
    assert report.combined.count == 4


def test_collect_sales_aborts_on_failing_location() -> None:
    """An error on the second location's second page discards the whole report."""
    http = FakeHttp(
        [
            FakeResponse(200, {"payments": [payment(500)]}),
            FakeResponse(200, {"payments": [payment(100)], "cursor": "c1"}),
            FakeResponse(503, {"errors": [{"code": "SERVICE_UNAVAILABLE"}]}),
        ]
    )

    with pytest.raises(UpstreamError) as exc_info:
        collect_sales(http, API_URL, "tok", ["A", "B"], BEGIN, END)

    assert exc_info.value.status_code == 503
    assert exc_info.value.location_id == "B"
    assert len(http.calls) == 3
