"""Convert aggregated payment stats into summaries and text reports."""

import datetime

from square_bridge.core.models import (
    AmountSummary,
    CombinedStats,
    LocationSummary,
    RangeInfo,
    SalesReport,
    SalesSummary,
)
from square_bridge.core.settings import TrackedLocation


def cents_to_euros(cents: int) -> float:
    """Convert minor currency units to a major-unit amount with two decimals."""
    return round(cents / 100, 2)


def to_iso(moment: datetime.datetime) -> str:
    """Format a timestamp as UTC ISO-8601 with milliseconds, e.g. 2024-05-01T10:00:00.000Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    moment = moment.astimezone(datetime.timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def last_hours_range(
    hours: int, now: datetime.datetime | None = None
) -> tuple[datetime.datetime, datetime.datetime]:
    """Return the [begin, end) range covering the last `hours` hours."""
    end = now or datetime.datetime.now(datetime.timezone.utc)
    return end - datetime.timedelta(hours=hours), end


def range_info(hours: int, begin: datetime.datetime, end: datetime.datetime) -> RangeInfo:
    """Describe a report range."""
    return RangeInfo(type=f"last_{hours}_hours", begin_iso=to_iso(begin), end_iso=to_iso(end))


def amount_summary(stats: CombinedStats) -> AmountSummary:
    return AmountSummary(
        total_eur=cents_to_euros(stats.total_cents),
        card_eur=cents_to_euros(stats.card_cents),
        cash_eur=cents_to_euros(stats.cash_cents),
        other_eur=cents_to_euros(stats.other_cents),
        count=stats.count,
    )


def build_summary(report: SalesReport, info: RangeInfo) -> SalesSummary:
    """
    Build the structured sales summary.

    Args:
        report (SalesReport): Aggregated stats of all tracked locations.
        info (RangeInfo): The range the stats cover.

    Returns:
        SalesSummary: Range, combined totals and per-location totals in euros.
    """
    return SalesSummary(
        range=info,
        combined=amount_summary(report.combined),
        per_location=[
            LocationSummary(location_id=stats.location_id, **amount_summary(stats).model_dump())
            for stats in report.per_location
        ],
    )


def _eur(cents: int) -> str:
    return f"€{cents_to_euros(cents):.2f}"


def render_daily_report(
    report: SalesReport,
    locations: list[TrackedLocation],
    info: RangeInfo,
    hours: int,
) -> str:
    """
    Render the sales report as deterministic multi-line text.

    Combined totals by payment method come first, then each location's total
    and sale count in the configured order, then the queried range.
    """
    names = {location.id: location.name for location in locations}
    combined = report.combined
    joined_names = " + ".join(names.get(s.location_id, s.location_id) for s in report.per_location)

    lines = [
        f"Sales summary (last {hours} hours):",
        "",
        f"• Combined total ({joined_names}): {_eur(combined.total_cents)} "
        f"in {combined.count} sales.",
        f"   - Card: {_eur(combined.card_cents)}",
        f"   - Cash: {_eur(combined.cash_cents)}",
        f"   - Other: {_eur(combined.other_cents)}",
        "",
    ]
    for stats in report.per_location:
        name = names.get(stats.location_id, stats.location_id)
        lines.append(
            f"• {name} ({stats.location_id}): {_eur(stats.total_cents)} ({stats.count} sales)"
        )
    lines.extend(
        [
            "",
            "Time range:",
            f"   From: {info.begin_iso}",
            f"   To: {info.end_iso}",
        ]
    )
    return "\n".join(lines)
