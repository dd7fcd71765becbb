"""Import completed Square orders into the sales tables."""

import datetime
import logging
import math
import re
from typing import Any, Iterable, Iterator

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from square_bridge.core.errors import InvalidInputError, StoreUnavailableError, UpstreamError
from square_bridge.core.models import SalesOrder, SalesOrderItem
from square_bridge.core.payments import response_body, square_headers
from square_bridge.core.report import to_iso

logger = logging.getLogger("orders")

DAYS_PATTERN = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def parse_days(raw: str | None, default: int) -> int | float:
    """
    Parse the optional `days` query parameter.

    Raises:
        InvalidInputError: If the value is not a positive number.
    """
    if raw is None or raw.strip() == "":
        return default
    if not DAYS_PATTERN.fullmatch(raw.strip()):
        raise InvalidInputError('Invalid "days" parameter, must be positive number', details=raw)
    days = float(raw)
    if math.isnan(days) or math.isinf(days) or days <= 0:
        raise InvalidInputError('Invalid "days" parameter, must be positive number', details=raw)
    return int(days) if days.is_integer() else days


def iter_orders(
    http: requests.Session,
    api_url: str,
    access_token: str,
    location_ids: list[str],
    start: datetime.datetime,
    end: datetime.datetime,
    timeout: float | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Yield the COMPLETED orders of the locations closed in [start, end).

    Raises:
        UpstreamError: On the first page answered with a non-success status.
    """
    cursor: str | None = None
    while True:
        body: dict[str, Any] = {
            "location_ids": location_ids,
            "query": {
                "filter": {
                    "date_time_filter": {
                        "closed_at": {"start_at": to_iso(start), "end_at": to_iso(end)},
                    },
                    "state_filter": {"states": ["COMPLETED"]},
                },
            },
        }
        if cursor:
            body["cursor"] = cursor

        response = http.post(
            f"{api_url}/orders/search",
            json=body,
            headers=square_headers(access_token),
            timeout=timeout,
        )
        payload = response_body(response)

        if not response.ok:
            logger.error("Square Orders API error: %s %s", response.status_code, payload)
            raise UpstreamError(
                "Square Orders API error", status_code=response.status_code, body=payload
            )

        yield from payload.get("orders") or []

        cursor = payload.get("cursor")
        if not cursor:
            return


def _pick(data: dict[str, Any], *keys: str) -> Any:
    """First non-None value among snake_case / camelCase spellings of a field."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _money(data: dict[str, Any], *keys: str) -> int | None:
    money = _pick(data, *keys)
    return money.get("amount") if isinstance(money, dict) else None


def order_to_row(order: dict[str, Any], merchant_id: str) -> dict[str, Any]:
    """Map a Square order to the columns of `sales_orders`."""
    return {
        "square_order_id": order["id"],
        "merchant_id": merchant_id,
        "location_id": _pick(order, "location_id", "locationId") or "UNKNOWN",
        "state": order.get("state"),
        "created_at_utc": _pick(order, "created_at", "createdAt"),
        "closed_at_utc": _pick(order, "closed_at", "closedAt"),
        "updated_at_utc": _pick(order, "updated_at", "updatedAt"),
        "total_money_cents": _money(order, "total_money", "totalMoney"),
        "total_discount_cents": _money(order, "total_discount_money", "totalDiscountMoney"),
        "total_tax_cents": _money(order, "total_tax_money", "totalTaxMoney"),
        "total_tip_cents": _money(order, "total_tip_money", "totalTipMoney"),
    }


def line_item_to_row(item: dict[str, Any]) -> dict[str, Any]:
    """Map a Square order line item to the columns of `sales_order_items`."""
    quantity = item.get("quantity")
    return {
        "catalog_object_id": _pick(item, "catalog_object_id", "catalogObjectId"),
        "sku": item.get("sku"),
        "item_name": item.get("name"),
        "variation_name": _pick(item, "variation_name", "variationName"),
        "quantity": float(quantity) if quantity else 0,
        "gross_sales_cents": _money(item, "gross_sales_money", "grossSalesMoney"),
        "discount_cents": _money(item, "total_discount_money", "totalDiscountMoney"),
        "net_sales_cents": _money(item, "net_sales_money", "netSalesMoney"),
    }


def import_orders(
    db: Session, orders: Iterable[dict[str, Any]], merchant_id: str
) -> tuple[int, int]:
    """
    Upsert orders by Square order id and replace their line items.

    The import is committed once the orders are exhausted. Any failure, while
    fetching or while writing, rolls the whole import back.

    Returns:
        tuple[int, int]: Number of imported orders and line items.

    Raises:
        UpstreamError: If a page of orders cannot be fetched.
        StoreUnavailableError: If an order cannot be written.
    """
    imported_orders = 0
    imported_items = 0

    try:
        for order in orders:
            if not order.get("id"):
                continue

            row = order_to_row(order, merchant_id)
            sales_order = db.query(SalesOrder).filter_by(square_order_id=order["id"]).first()
            if sales_order is None:
                sales_order = SalesOrder(square_order_id=order["id"])
                db.add(sales_order)
            for column, value in row.items():
                setattr(sales_order, column, value)
            db.flush()

            db.query(SalesOrderItem).filter_by(sales_order_id=sales_order.id).delete()
            items = [
                SalesOrderItem(sales_order_id=sales_order.id, **line_item_to_row(item))
                for item in _pick(order, "line_items", "lineItems") or []
            ]
            db.add_all(items)
            db.flush()

            imported_orders += 1
            imported_items += len(items)

        db.commit()
    except UpstreamError:
        db.rollback()
        logger.warning("Orders import rolled back after %s orders", imported_orders)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to save imported orders: %s", str(e))
        raise StoreUnavailableError("Failed to save imported orders", details=str(e)) from e

    return imported_orders, imported_items
