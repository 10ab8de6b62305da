"""
Meta (Facebook) Ads Connector for the Meta Ads Dashboard

Read-only client for the Graph API: insight rows, ad creatives and the
campaign list of an ad account. Credentials are passed per call because
each dashboard user brings their own account.
"""

import json
import logging
import os
from typing import Optional

from dotenv import load_dotenv
import requests

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_INSIGHT_FIELDS = [
    "account_id",
    "account_name",
    "campaign_id",
    "campaign_name",
    "adset_id",
    "adset_name",
    "ad_id",
    "ad_name",
    "impressions",
    "reach",
    "frequency",
    "clicks",
    "unique_clicks",
    "spend",
    "ctr",
    "cpc",
    "cpm",
    "cpp",
    "actions",
    "action_values",
    "cost_per_action_type",
    "video_play_actions",
    "video_thruplay_watched_actions",
    "video_avg_time_watched_actions",
    "video_p50_watched_actions",
    "video_p100_watched_actions",
]

CREATIVE_FIELDS = "creative{id,name,title,body,image_url,video_id,thumbnail_url,object_story_spec}"
CAMPAIGN_FIELDS = "id,name,status,objective,daily_budget,lifetime_budget"

VALID_LEVELS = ("account", "campaign", "adset", "ad")

# Graph errors that mean the object itself cannot be read (deleted ad, missing
# permission). Anything else is retried on the next request.
PERMANENT_ERROR_STATUSES = (400, 403, 404)
# Throttling codes come back as 400s too
RATE_LIMIT_ERROR_CODES = (4, 17, 32, 613, 80000, 80003, 80004)

# Graph API time_increment values per granularity
TIME_INCREMENTS = {
    "daily": 1,
    "monthly": "monthly",
    "all_days": "all_days",
}


class MetaAdsAPIError(Exception):
    """Raised when the Graph API rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, error: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.error = error or {}

    @property
    def is_permanent(self) -> bool:
        """True when Meta answered with an error payload that retrying will not fix."""
        return (
            self.status_code in PERMANENT_ERROR_STATUSES
            and bool(self.error)
            and self.error.get("code") not in RATE_LIMIT_ERROR_CODES
        )


def normalize_account_id(account_id: str) -> str:
    """Ensure the ad account id carries the act_ prefix."""
    account_id = account_id.strip()
    if account_id.startswith("act_"):
        return account_id
    return f"act_{account_id}"


class MetaAdsClient:
    """Connector for Meta Marketing API."""

    def __init__(self, api_version: Optional[str] = None, timeout: float = 30,
                 session: Optional[requests.Session] = None):
        self.api_version = api_version or os.getenv("META_API_VERSION", "v24.0")
        self.base_url = f"https://graph.facebook.com/{self.api_version}"
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, url: str, params: Optional[dict] = None) -> dict:
        """GET a Graph API url and return the decoded body."""
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise MetaAdsAPIError(f"Meta Ads API Error: request timed out ({e})") from e
        except requests.RequestException as e:
            raise MetaAdsAPIError(f"Meta Ads API Error: {e}") from e

        if response.status_code != 200:
            try:
                error_data = response.json().get("error", {})
            except ValueError:
                error_data = {}
            message = error_data.get("message") or response.text
            raise MetaAdsAPIError(
                f"Meta Ads API Error: {message}", status_code=response.status_code, error=error_data
            )

        try:
            return response.json()
        except ValueError as e:
            raise MetaAdsAPIError(f"Meta Ads API Error: invalid JSON response ({e})") from e

    def _make_request(self, endpoint: str, access_token: str, params: dict = None) -> dict:
        """Make authenticated request to Meta API."""
        if params is None:
            params = {}

        params["access_token"] = access_token
        return self._get(f"{self.base_url}/{endpoint}", params)

    def fetch_insights(
        self,
        account_id: str,
        access_token: str,
        date_preset: Optional[str] = None,
        time_range: Optional[dict] = None,
        level: str = "ad",
        time_granularity: Optional[str] = None,
        fields: Optional[list[str]] = None,
    ) -> list[dict]:
        """
        Get insight rows for an ad account.

        Args:
            account_id: Ad account id, with or without the act_ prefix
            access_token: User access token
            date_preset: Graph API preset such as last_30d (ignored when time_range is given)
            time_range: {"since": "YYYY-MM-DD", "until": "YYYY-MM-DD"}
            level: account, campaign, adset or ad
            time_granularity: daily, monthly or all_days

        Returns:
            Raw insight rows, all pages concatenated
        """
        if level not in VALID_LEVELS:
            raise MetaAdsAPIError(f"Meta Ads API Error: invalid level '{level}'")

        params = {
            "level": level,
            "fields": ",".join(fields or DEFAULT_INSIGHT_FIELDS),
            "limit": 500,
        }

        if time_range:
            params["time_range"] = json.dumps(
                {"since": time_range["since"], "until": time_range["until"]}
            )
        else:
            params["date_preset"] = date_preset or "last_30d"

        # Daily breakdown by default for custom ranges
        granularity = time_granularity or ("daily" if time_range else None)
        if granularity:
            if granularity not in TIME_INCREMENTS:
                raise MetaAdsAPIError(f"Meta Ads API Error: invalid time granularity '{granularity}'")
            params["time_increment"] = TIME_INCREMENTS[granularity]

        endpoint = f"{normalize_account_id(account_id)}/insights"
        data = self._make_request(endpoint, access_token, params)

        all_rows = list(data.get("data", []))

        # Handle pagination, the next url already carries the token
        while data.get("paging", {}).get("next"):
            data = self._get(data["paging"]["next"])
            all_rows.extend(data.get("data", []))

        logger.info("Fetched %d insight rows (level=%s)", len(all_rows), level)
        return all_rows

    def fetch_creative(self, ad_id: str, access_token: str) -> Optional[dict]:
        """
        Get the creative attached to an ad.

        Returns None when Meta refuses the creative for good (deleted ad, lost
        permissions). Timeouts, throttling and server errors are raised.
        """
        try:
            data = self._make_request(ad_id, access_token, {"fields": CREATIVE_FIELDS})
        except MetaAdsAPIError as e:
            if not e.is_permanent:
                raise
            logger.warning("Creative unavailable for ad %s: %s", ad_id, e)
            return None

        return data.get("creative") or None

    def fetch_campaigns(self, account_id: str, access_token: str) -> list[dict]:
        """Get campaigns (id, name, status, objective, budgets) for an ad account."""
        endpoint = f"{normalize_account_id(account_id)}/campaigns"
        data = self._make_request(endpoint, access_token, {"fields": CAMPAIGN_FIELDS, "limit": 500})

        campaigns = list(data.get("data", []))
        while data.get("paging", {}).get("next"):
            data = self._get(data["paging"]["next"])
            campaigns.extend(data.get("data", []))

        return campaigns
