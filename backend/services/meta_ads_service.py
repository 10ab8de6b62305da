"""
Meta Ads data service.

Every read goes credentials -> cache -> Graph API -> compute -> cache. A
cache write only happens after the whole step succeeded, so API errors
never leave partial results behind.
"""

import json
import logging
from datetime import date
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field

from connectors.meta_ads import MetaAdsClient
from services import config
from services.cache_store import MISSING, CacheStore
from services.credentials import CredentialStore, NoCredentialsError
from services.date_ranges import DATE_PRESETS, resolve_preset
from services.metrics import aggregate_metrics, build_timeline, calculate_revenue, get_video_retention
from services.rankings import DEFAULT_RANKING_LIMIT, rank_insights

logger = logging.getLogger(__name__)

Level = Literal["account", "campaign", "adset", "ad"]
SortKey = Literal["ctr", "cpc", "conversions", "roas"]


class TimeRange(BaseModel):
    since: str
    until: str


class InsightsQuery(BaseModel):
    """Query shape accepted from the routers."""
    date_preset: Optional[str] = None
    time_range: Optional[TimeRange] = None
    level: Level = "ad"
    sort_by: SortKey = "ctr"
    limit: int = Field(default=DEFAULT_RANKING_LIMIT, ge=0)


def build_cache_key(view: str, discriminator: str = "", date_preset: Optional[str] = None,
                    time_range: Optional[dict] = None) -> str:
    """
    Cache key for a view over a date window.

    The range is serialized with sorted keys so {"since", "until"} in any
    order gives the same key.
    """
    range_part = json.dumps(time_range or {}, sort_keys=True, separators=(",", ":"))
    return f"{view}_{discriminator}_{date_preset or ''}_{range_part}"


class MetaAdsService:
    """Read-through cache in front of the Meta Ads client."""

    def __init__(
        self,
        credentials: CredentialStore,
        cache: CacheStore,
        client: MetaAdsClient,
        short_ttl_minutes: int = config.CACHE_TTL_SHORT_MINUTES,
        long_ttl_minutes: int = config.CACHE_TTL_LONG_MINUTES,
        today: Callable[[], date] = date.today,
    ):
        self.credentials = credentials
        self.cache = cache
        self.client = client
        self.short_ttl_minutes = short_ttl_minutes
        self.long_ttl_minutes = long_ttl_minutes
        self.today = today

    # -- credentials ---------------------------------------------------------

    def _require_credentials(self, user_id: str) -> dict:
        record = self.credentials.get(user_id)
        if not record:
            raise NoCredentialsError()
        return record

    def save_credentials(self, user_id: str, account_id: str, access_token: str):
        self.credentials.save(user_id, account_id, access_token)
        # Cached figures belong to the previous account
        self.cache.clear_user(user_id)

    def delete_credentials(self, user_id: str):
        self.credentials.delete(user_id)
        self.cache.clear_user(user_id)

    # -- helpers -------------------------------------------------------------

    def _window(self, query: InsightsQuery) -> tuple[Optional[str], Optional[dict]]:
        """(graph_preset, time_range) for a query; dashboard presets become ranges."""
        if query.time_range:
            return None, query.time_range.model_dump()
        if query.date_preset in DATE_PRESETS:
            return None, resolve_preset(query.date_preset, self.today())
        return query.date_preset, None

    def _cached(self, user_id: str, key: str, ttl_minutes: int, compute: Callable[[], Any]) -> Any:
        cached = self.cache.get(user_id, key, default=MISSING)
        if cached is not MISSING:
            logger.debug("Cache hit %s for user %s", key, user_id)
            return cached

        logger.debug("Cache miss %s for user %s", key, user_id)
        result = compute()
        self.cache.set(user_id, key, result, ttl_minutes)
        return result

    def _fetch(self, creds: dict, date_preset: Optional[str], time_range: Optional[dict], level: str) -> list[dict]:
        return self.client.fetch_insights(
            account_id=creds["account_id"],
            access_token=creds["access_token"],
            date_preset=date_preset,
            time_range=time_range,
            level=level,
            time_granularity="daily" if time_range else None,
        )

    # -- views ---------------------------------------------------------------

    def get_insights(self, user_id: str, query: InsightsQuery) -> list[dict]:
        """Raw insight rows at the requested level."""
        creds = self._require_credentials(user_id)
        preset, time_range = self._window(query)
        key = build_cache_key("insights", query.level, preset, time_range)

        return self._cached(
            user_id, key, self.short_ttl_minutes,
            lambda: self._fetch(creds, preset, time_range, query.level),
        )

    def get_metrics(self, user_id: str, query: InsightsQuery) -> dict:
        """Account-level totals and averages."""
        creds = self._require_credentials(user_id)
        preset, time_range = self._window(query)
        key = build_cache_key("metrics", "account", preset, time_range)

        return self._cached(
            user_id, key, self.short_ttl_minutes,
            lambda: aggregate_metrics(self._fetch(creds, preset, time_range, "account")).to_dict(),
        )

    def get_rankings(self, user_id: str, query: InsightsQuery) -> list[dict]:
        """Top ads by query.sort_by."""
        creds = self._require_credentials(user_id)
        preset, time_range = self._window(query)
        key = build_cache_key("rankings", f"{query.sort_by}_{query.limit}", preset, time_range)

        return self._cached(
            user_id, key, self.short_ttl_minutes,
            lambda: rank_insights(self._fetch(creds, preset, time_range, "ad"), query.sort_by, query.limit),
        )

    def get_revenue(self, user_id: str, query: InsightsQuery) -> dict:
        """De-duplicated spend / revenue / ROAS / ROI from ad-level rows."""
        creds = self._require_credentials(user_id)
        preset, time_range = self._window(query)
        key = build_cache_key("revenue", "ad", preset, time_range)

        return self._cached(
            user_id, key, self.short_ttl_minutes,
            lambda: calculate_revenue(self._fetch(creds, preset, time_range, "ad")).to_dict(),
        )

    def get_timeline(self, user_id: str, query: InsightsQuery) -> list[dict]:
        """Daily spend / impressions / clicks built from the cached ad-level insights."""
        return build_timeline(self.get_insights(user_id, query.model_copy(update={"level": "ad"})))

    def get_video_retention(self, user_id: str, query: InsightsQuery) -> list[dict]:
        """Video retention figures per ad that reported any video activity."""
        rows = self.get_insights(user_id, query.model_copy(update={"level": "ad"}))
        results = []
        for row in rows:
            retention = get_video_retention(row)
            if retention.has_video_data:
                results.append({
                    "ad_id": row.get("ad_id"),
                    "ad_name": row.get("ad_name"),
                    "date_start": row.get("date_start"),
                    **retention.to_dict(),
                })
        return results

    def get_ad_creative(self, user_id: str, ad_id: str) -> Optional[dict]:
        """Creative of an ad. None (also cached) when Meta refuses it for good."""
        creds = self._require_credentials(user_id)
        key = build_cache_key("creative", ad_id)

        return self._cached(
            user_id, key, self.long_ttl_minutes,
            lambda: self.client.fetch_creative(ad_id, creds["access_token"]),
        )

    def list_campaigns(self, user_id: str) -> list[dict]:
        """Campaigns of the connected ad account."""
        creds = self._require_credentials(user_id)
        key = build_cache_key("campaigns")

        return self._cached(
            user_id, key, self.short_ttl_minutes,
            lambda: self.client.fetch_campaigns(creds["account_id"], creds["access_token"]),
        )
