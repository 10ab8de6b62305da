"""Shared fixtures: file-backed stores in tmp_path, a fake Meta client and clock."""

from datetime import date

import pytest

from connectors.meta_ads import MetaAdsAPIError
from services.cache_store import CacheStore
from services.credentials import CredentialStore
from services.meta_ads_service import MetaAdsService


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float):
        self.now += minutes * 60


class FakeMetaClient:
    """Records calls and returns canned rows instead of hitting the Graph API."""

    def __init__(self, rows=None, creatives=None, campaigns=None):
        self.rows = rows or []
        self.creatives = creatives or {}
        self.campaigns = campaigns or []
        self.error = None
        self.insight_calls = []
        self.creative_calls = []
        self.campaign_calls = 0

    def fetch_insights(self, **kwargs):
        self.insight_calls.append(kwargs)
        if self.error:
            raise self.error
        return [dict(r) for r in self.rows]

    def fetch_creative(self, ad_id, access_token):
        self.creative_calls.append(ad_id)
        return self.creatives.get(ad_id)

    def fetch_campaigns(self, account_id, access_token):
        self.campaign_calls += 1
        if self.error:
            raise self.error
        return list(self.campaigns)


SAMPLE_ROWS = [
    {
        "ad_id": "1",
        "ad_name": "Spring Video",
        "campaign_name": "Spring Sale",
        "date_start": "2024-01-01",
        "spend": "100",
        "impressions": "10000",
        "clicks": "200",
        "reach": "8000",
        "ctr": "2.0",
        "cpc": "0.50",
        "cpm": "10.0",
        "actions": [{"action_type": "purchase", "value": "4"}],
        "action_values": [{"action_type": "purchase", "value": "250"}],
        "video_play_actions": [{"action_type": "video_view", "value": "900"}],
        "video_p50_watched_actions": [{"action_type": "video_view", "value": "300"}],
    },
    {
        "ad_id": "2",
        "ad_name": "Static Banner",
        "campaign_name": "Always On",
        "date_start": "2024-01-02",
        "spend": "50",
        "impressions": "5000",
        "clicks": "50",
        "reach": "4500",
        "ctr": "1.0",
        "cpc": "1.00",
        "cpm": "10.0",
    },
]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_store(tmp_path, clock):
    return CacheStore(tmp_path / "cache.json", clock=clock)


@pytest.fixture
def credential_store(tmp_path):
    return CredentialStore(tmp_path / "credentials.json")


@pytest.fixture
def fake_client():
    return FakeMetaClient(rows=SAMPLE_ROWS)


@pytest.fixture
def service(credential_store, cache_store, fake_client):
    return MetaAdsService(
        credentials=credential_store,
        cache=cache_store,
        client=fake_client,
        short_ttl_minutes=30,
        long_ttl_minutes=1440,
        today=lambda: date(2024, 3, 15),
    )


@pytest.fixture
def connected_service(service):
    service.save_credentials("user-1", "123456789", "token-abc")
    return service


@pytest.fixture
def api_error():
    return MetaAdsAPIError("Meta Ads API Error: (#17) User request limit reached", status_code=400)
