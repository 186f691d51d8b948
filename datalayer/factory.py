"""Build cache instances from settings."""
from typing import Optional

from config.settings import Settings, settings as default_settings
from datalayer.cache import RequestCache, TTLStore


def build_request_cache(settings: Optional[Settings] = None) -> RequestCache:
    settings = settings or default_settings
    return RequestCache(
        default_config=settings.cache_config(),
        retry_options=settings.retry_options(),
    )


def build_ttl_store(settings: Optional[Settings] = None) -> TTLStore:
    settings = settings or default_settings
    return TTLStore(
        max_size=settings.ttl_store_max_size,
        default_ttl_seconds=settings.ttl_store_default_ttl_seconds,
    )
