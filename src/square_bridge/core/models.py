"""
Database models for OAuth credential storage and imported sales, plus the
response models returned by the Square endpoints.
"""

import datetime
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from square_bridge.core.database import Base


class SquareToken(Base):
    """
    Represents the Square OAuth credential of a merchant.

    Attributes:
        id (int): Surrogate key, increases with every new merchant.
        merchant_id (str): Square merchant identifier, unique.
        access_token (str): OAuth access token for authenticating API requests.
        refresh_token (str): OAuth refresh token.
        expires_at (str): Expiry timestamp of the access token as sent by Square.
        short_lived (bool): Whether Square issued a short-lived token.
        created_at (datetime): Timestamp when the credential row was created.
    """

    __tablename__ = "square_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    merchant_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    access_token: Mapped[str] = mapped_column(String, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(String, nullable=True)
    expires_at: Mapped[str | None] = mapped_column(String, nullable=True)
    short_lived: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP")
    )


class SalesOrder(Base):
    """A completed Square order imported by the sales import endpoint."""

    __tablename__ = "sales_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    square_order_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    merchant_id: Mapped[str] = mapped_column(String, nullable=False)
    location_id: Mapped[str] = mapped_column(String, nullable=False)
    state: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at_utc: Mapped[str | None] = mapped_column(String, nullable=True)
    closed_at_utc: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at_utc: Mapped[str | None] = mapped_column(String, nullable=True)
    total_money_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_discount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_tax_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_tip_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)


class SalesOrderItem(Base):
    """A line item of an imported order."""

    __tablename__ = "sales_order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sales_order_id: Mapped[int] = mapped_column(
        ForeignKey("sales_orders.id", ondelete="CASCADE"), index=True, nullable=False
    )
    catalog_object_id: Mapped[str | None] = mapped_column(String, nullable=True)
    sku: Mapped[str | None] = mapped_column(String, nullable=True)
    item_name: Mapped[str | None] = mapped_column(String, nullable=True)
    variation_name: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[float] = mapped_column(Float, default=0)
    gross_sales_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    discount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    net_sales_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)


@dataclass
class CombinedStats:
    """Payment totals in minor currency units, split by payment method."""

    total_cents: int = 0
    card_cents: int = 0
    cash_cents: int = 0
    other_cents: int = 0
    count: int = 0


@dataclass
class LocationStats(CombinedStats):
    """Payment totals of a single location."""

    location_id: str = ""


@dataclass
class SalesReport:
    """Result of one aggregation run over the tracked locations."""

    combined: CombinedStats
    per_location: list[LocationStats]


class RangeInfo(BaseModel):
    """Time range a report covers."""

    type: str = Field(..., description="Range descriptor, e.g. last_24_hours")
    begin_iso: str = Field(..., description="Inclusive start, ISO-8601")
    end_iso: str = Field(..., description="Exclusive end, ISO-8601")


class AmountSummary(BaseModel):
    """Totals converted to major currency units."""

    total_eur: float
    card_eur: float
    cash_eur: float
    other_eur: float
    count: int


class LocationSummary(AmountSummary):
    location_id: str


class SalesSummary(BaseModel):
    range: RangeInfo
    combined: AmountSummary
    per_location: List[LocationSummary]


class DailyReport(BaseModel):
    range: RangeInfo
    report: str


class ImportSummary(BaseModel):
    ok: bool = True
    imported_orders: int
    imported_items: int
    from_: str = Field(..., alias="from")
    to: str
    days: Union[int, float]

    model_config = {"populate_by_name": True}


class OAuthResult(BaseModel):
    message: str
    tokens: dict[str, Any]
    persisted: Optional[bool] = None
