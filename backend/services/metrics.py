"""
Metric calculations over raw Meta Ads insight rows.

The Graph API sends every numeric measure as a string that may be missing,
so every value goes through parse_metric before any arithmetic.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

# Action types counted as a purchase (revenue / conversions)
PURCHASE_ACTION_TYPES = (
    "purchase",
    "omni_purchase",
    "offsite_conversion.fb_pixel_purchase",
)

# Single-row ROAS only looks at these two
ROAS_ACTION_TYPES = ("purchase", "omni_purchase")


def parse_metric(raw: Any) -> float:
    """Parse a Graph API numeric field. Missing or unparseable values count as 0."""
    if raw is None or raw == "":
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value


def single_match_value(actions: Optional[Iterable[dict]], action_types: Iterable[str]) -> float:
    """Value of the first action whose type is in action_types, else 0."""
    types = set(action_types)
    for action in actions or []:
        if action.get("action_type") in types:
            return parse_metric(action.get("value"))
    return 0.0


def sum_matching_values(actions: Optional[Iterable[dict]], action_types: Iterable[str]) -> float:
    """Sum of the values of every action whose type is in action_types."""
    types = set(action_types)
    return sum(
        parse_metric(action.get("value"))
        for action in actions or []
        if action.get("action_type") in types
    )


def calculate_row_roas(row: dict) -> float:
    """ROAS of a single insight row (first purchase action value over the row's spend)."""
    spend = parse_metric(row.get("spend"))
    if spend == 0:
        return 0.0
    return single_match_value(row.get("action_values"), ROAS_ACTION_TYPES) / spend


def get_conversion_count(row: dict) -> float:
    """Purchase conversions reported on a row, summed across purchase action types."""
    return sum_matching_values(row.get("actions"), PURCHASE_ACTION_TYPES)


@dataclass
class AggregatedMetrics:
    """Totals and averages for one insights query."""
    total_spend: float = 0
    total_impressions: int = 0
    total_clicks: int = 0
    total_reach: int = 0
    # Means of the per-row ratios the API reports, not ratios of the totals
    avg_ctr: float = 0
    avg_cpc: float = 0
    avg_cpm: float = 0
    purchase_value: float = 0
    roas: float = 0

    def to_dict(self) -> dict:
        return {
            "totalSpend": self.total_spend,
            "totalImpressions": self.total_impressions,
            "totalClicks": self.total_clicks,
            "totalReach": self.total_reach,
            "avgCTR": self.avg_ctr,
            "avgCPC": self.avg_cpc,
            "avgCPM": self.avg_cpm,
            "purchaseValue": self.purchase_value,
            "roas": self.roas,
        }


def aggregate_metrics(rows: list[dict]) -> AggregatedMetrics:
    """
    Reduce insight rows to one AggregatedMetrics record.

    Rows are summed as given (no de-duplication). A row carrying several
    purchase action types contributes all of them to purchase_value.
    """
    metrics = AggregatedMetrics()
    total_ctr = 0.0
    total_cpc = 0.0
    total_cpm = 0.0

    for row in rows:
        metrics.total_spend += parse_metric(row.get("spend"))
        metrics.total_impressions += int(parse_metric(row.get("impressions")))
        metrics.total_clicks += int(parse_metric(row.get("clicks")))
        metrics.total_reach += int(parse_metric(row.get("reach")))

        total_ctr += parse_metric(row.get("ctr"))
        total_cpc += parse_metric(row.get("cpc"))
        total_cpm += parse_metric(row.get("cpm"))

        metrics.purchase_value += sum_matching_values(row.get("action_values"), PURCHASE_ACTION_TYPES)

    if rows:
        metrics.avg_ctr = total_ctr / len(rows)
        metrics.avg_cpc = total_cpc / len(rows)
        metrics.avg_cpm = total_cpm / len(rows)

    if metrics.total_spend > 0:
        metrics.roas = metrics.purchase_value / metrics.total_spend

    return metrics


@dataclass
class RevenueSummary:
    """Spend vs. generated revenue after dropping repeated (ad_id, date_start) rows."""
    total_spend: float = 0
    total_generated: float = 0
    roas: float = 0
    roi: float = 0  # percent

    # Operator diagnostics
    input_rows: int = 0
    unique_rows: int = 0
    unique_ads: int = 0
    purchase_actions: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_revenue(rows: list[dict]) -> RevenueSummary:
    """
    Sum spend and purchase revenue, counting each (ad_id, date_start) once.

    Rows are processed in input order; later repeats of a key are skipped.
    """
    summary = RevenueSummary(input_rows=len(rows))
    seen: set[tuple] = set()
    ad_ids: set = set()

    for row in rows:
        key = (row.get("ad_id"), row.get("date_start"))
        if key in seen:
            continue
        seen.add(key)
        ad_ids.add(row.get("ad_id"))

        summary.total_spend += parse_metric(row.get("spend"))
        for action in row.get("action_values") or []:
            if action.get("action_type") in PURCHASE_ACTION_TYPES:
                summary.total_generated += parse_metric(action.get("value"))
                summary.purchase_actions += 1

    summary.unique_rows = len(seen)
    summary.unique_ads = len(ad_ids)

    if summary.total_spend > 0:
        summary.roas = summary.total_generated / summary.total_spend
        summary.roi = (summary.total_generated - summary.total_spend) / summary.total_spend * 100

    logger.debug(
        "Revenue dedup: %d input rows, %d unique rows, %d ads, %d purchase actions",
        summary.input_rows, summary.unique_rows, summary.unique_ads, summary.purchase_actions,
    )
    return summary


def build_timeline(rows: list[dict]) -> list[dict]:
    """Daily spend / impressions / clicks, summed per date_start and sorted by date."""
    by_date: dict[str, dict] = {}

    for row in rows:
        date = row.get("date_start") or "Unknown"
        point = by_date.setdefault(date, {"date": date, "spend": 0.0, "impressions": 0, "clicks": 0})
        point["spend"] += parse_metric(row.get("spend"))
        point["impressions"] += int(parse_metric(row.get("impressions")))
        point["clicks"] += int(parse_metric(row.get("clicks")))

    return [by_date[d] for d in sorted(by_date)]


@dataclass
class VideoRetention:
    """Video watch figures for one ad."""
    video_plays: int = 0
    thruplays: int = 0
    avg_time_watched: float = 0
    p50: int = 0
    p100: int = 0
    has_video_data: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _first_action_value(actions: Optional[list[dict]]) -> float:
    if not actions:
        return 0.0
    return parse_metric(actions[0].get("value"))


def get_video_retention(row: dict) -> VideoRetention:
    """Read the video action lists of an ad row (first entry of each list)."""
    retention = VideoRetention(
        video_plays=int(_first_action_value(row.get("video_play_actions"))),
        thruplays=int(_first_action_value(row.get("video_thruplay_watched_actions"))),
        avg_time_watched=_first_action_value(row.get("video_avg_time_watched_actions")),
        p50=int(_first_action_value(row.get("video_p50_watched_actions"))),
        p100=int(_first_action_value(row.get("video_p100_watched_actions"))),
    )
    retention.has_video_data = any(
        (retention.video_plays, retention.thruplays, retention.p50, retention.p100)
    )
    return retention
