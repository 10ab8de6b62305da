"""Shared dependencies for API routers."""

from functools import lru_cache

from fastapi import Header, HTTPException

from connectors.meta_ads import MetaAdsClient
from services import config
from services.ai_assistant import ClaudeAnswerer
from services.cache_store import CacheStore
from services.credentials import CredentialStore
from services.meta_ads_service import MetaAdsService


@lru_cache
def get_cache_store() -> CacheStore:
    return CacheStore(config.CACHE_FILE)


@lru_cache
def get_service() -> MetaAdsService:
    """Dependency for the Meta Ads service (one per process)."""
    return MetaAdsService(
        credentials=CredentialStore(config.CREDENTIALS_FILE),
        cache=get_cache_store(),
        client=MetaAdsClient(api_version=config.META_API_VERSION, timeout=config.META_API_TIMEOUT),
    )


@lru_cache
def get_answerer() -> ClaudeAnswerer:
    return ClaudeAnswerer()


def get_user_id(x_user_id: str = Header(default="")) -> str:
    """Identity of the caller, set by the auth proxy in front of the API."""
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return user_id
