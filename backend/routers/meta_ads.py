"""
Meta Ads API endpoints.

Credentials management plus cached insights, metrics, rankings and creatives.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from connectors.meta_ads import MetaAdsAPIError
from dependencies import get_cache_store, get_service, get_user_id
from services.cache_store import CacheStore
from services.credentials import NoCredentialsError, public_view
from services.date_ranges import InvalidDateRange, validate_time_range
from services.meta_ads_service import InsightsQuery, MetaAdsService, TimeRange
from services.rankings import DEFAULT_RANKING_LIMIT

router = APIRouter()


class CredentialsRequest(BaseModel):
    """Request body for saving credentials."""
    account_id: str = Field(min_length=1)
    access_token: str = Field(min_length=1)


def build_query(
    date_preset: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    level: str = "ad",
    sort_by: str = "ctr",
    limit: int = DEFAULT_RANKING_LIMIT,
) -> InsightsQuery:
    """Parse and validate the common query parameters before any remote work."""
    time_range = None
    if since or until:
        if not (since and until):
            raise HTTPException(status_code=400, detail="Both 'since' and 'until' are required")
        try:
            time_range = TimeRange(**validate_time_range(since, until))
        except InvalidDateRange as e:
            raise HTTPException(status_code=400, detail=str(e))

    try:
        return InsightsQuery(
            date_preset=date_preset,
            time_range=time_range,
            level=level,
            sort_by=sort_by,
            limit=limit,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=[err["msg"] for err in e.errors()])


def _run(call, *args):
    """Call a service method and map its errors to HTTP responses."""
    try:
        return call(*args)
    except NoCredentialsError as e:
        raise HTTPException(status_code=412, detail=str(e))
    except InvalidDateRange as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MetaAdsAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))


# Credentials

@router.post("/credentials")
def save_credentials(
    request: CredentialsRequest,
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Save or replace the user's Meta Ads credentials."""
    service.save_credentials(user_id, request.account_id.strip(), request.access_token.strip())
    return {"success": True}


@router.get("/credentials")
def get_credentials(
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Account id and whether a token is stored (never the token itself). null if none."""
    return public_view(service.credentials.get(user_id))


@router.delete("/credentials")
def delete_credentials(
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Forget the user's credentials and cached data."""
    service.delete_credentials(user_id)
    return {"success": True}


# Data

@router.get("/insights")
def get_insights(
    query: InsightsQuery = Depends(build_query),
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Raw insight rows at the requested level (30 min cache)."""
    return _run(service.get_insights, user_id, query)


@router.get("/metrics")
def get_metrics(
    query: InsightsQuery = Depends(build_query),
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Account totals, average CTR/CPC/CPM, purchase value and ROAS."""
    return _run(service.get_metrics, user_id, query)


@router.get("/rankings")
def get_rankings(
    query: InsightsQuery = Depends(build_query),
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Top ads sorted by ctr, cpc, conversions or roas."""
    return _run(service.get_rankings, user_id, query)


@router.get("/revenue")
def get_revenue(
    query: InsightsQuery = Depends(build_query),
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Generated revenue, ROAS and ROI with duplicate ad/day rows removed."""
    return _run(service.get_revenue, user_id, query)


@router.get("/timeline")
def get_timeline(
    query: InsightsQuery = Depends(build_query),
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Daily spend, impressions and clicks."""
    return _run(service.get_timeline, user_id, query)


@router.get("/video-retention")
def get_video_retention(
    query: InsightsQuery = Depends(build_query),
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Video plays, thruplays and 50% / 100% watch counts per ad."""
    return _run(service.get_video_retention, user_id, query)


@router.get("/creatives/{ad_id}")
def get_ad_creative(
    ad_id: str,
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Creative preview data for an ad (24 h cache). null when unavailable."""
    return _run(service.get_ad_creative, user_id, ad_id)


@router.get("/campaigns")
def list_campaigns(
    user_id: str = Depends(get_user_id),
    service: MetaAdsService = Depends(get_service),
):
    """Campaigns of the connected ad account."""
    return {"campaigns": _run(service.list_campaigns, user_id)}


@router.post("/cache/sweep")
def sweep_cache(
    user_id: str = Depends(get_user_id),
    cache: CacheStore = Depends(get_cache_store),
):
    """Delete expired cache entries."""
    return {"removed": cache.clear_expired()}
