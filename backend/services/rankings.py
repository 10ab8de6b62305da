"""
Ad rankings by CTR, CPC, conversions or ROAS.
"""

import math
from typing import Optional

from services.metrics import calculate_row_roas, get_conversion_count, parse_metric

SORT_KEYS = ("ctr", "cpc", "conversions", "roas")
DEFAULT_RANKING_LIMIT = 10

# Rows without a CPC sort after every real value
CPC_MISSING_SENTINEL = float("inf")


def enrich_row(row: dict) -> dict:
    """Copy of the row with computed roas and conversions."""
    return {
        **row,
        "roas": calculate_row_roas(row),
        "conversions": get_conversion_count(row),
    }


def _cpc_key(row: dict) -> float:
    raw = row.get("cpc")
    if raw is None or raw == "":
        return CPC_MISSING_SENTINEL
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return CPC_MISSING_SENTINEL
    return value if math.isfinite(value) else CPC_MISSING_SENTINEL


def rank_insights(rows: list[dict], sort_by: str = "ctr", limit: Optional[int] = DEFAULT_RANKING_LIMIT) -> list[dict]:
    """
    Top ads by the given sort key.

    Everything sorts descending except cpc (cheapest first). Python's sort is
    stable, so ties keep their input order.
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Invalid sort key '{sort_by}'. Valid options: {list(SORT_KEYS)}")

    if limit is None:
        limit = DEFAULT_RANKING_LIMIT
    limit = max(limit, 0)

    enriched = [enrich_row(row) for row in rows]

    if sort_by == "ctr":
        enriched.sort(key=lambda r: parse_metric(r.get("ctr")), reverse=True)
    elif sort_by == "cpc":
        enriched.sort(key=_cpc_key)
    elif sort_by == "conversions":
        enriched.sort(key=lambda r: r["conversions"], reverse=True)
    else:
        enriched.sort(key=lambda r: r["roas"], reverse=True)

    return enriched[:limit]
