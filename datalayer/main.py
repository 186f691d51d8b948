"""
Diagnostics HTTP surface for the data-access layer.

Exposes health and cache maintenance endpoints over the cache
instances the application owns.
"""
from typing import Optional

from fastapi import FastAPI, Query, Request

from config.settings import settings
from datalayer.cache import RequestCache, TTLStore
from datalayer.factory import build_request_cache, build_ttl_store
from datalayer.logging_config import configure_logging

APP_NAME = "School Data Layer"
APP_VERSION = "v0.1.0"


def create_app(
    request_cache: Optional[RequestCache] = None,
    ttl_store: Optional[TTLStore] = None,
) -> FastAPI:
    """
    Build the diagnostics app around the given caches.

    Missing caches are built from settings; either way the app owns them
    on app.state for its whole lifetime.
    """
    configure_logging(settings.log_level)

    app = FastAPI(
        title=APP_NAME,
        description="Cache statistics and maintenance",
        version=APP_VERSION,
    )
    # Both caches define __len__, so an empty one is falsy
    app.state.request_cache = build_request_cache() if request_cache is None else request_cache
    app.state.ttl_store = build_ttl_store() if ttl_store is None else ttl_store

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/version")
    def version_info():
        """Version information endpoint."""
        return {"name": APP_NAME, "version": APP_VERSION}

    @app.get("/cache/stats")
    def cache_stats(request: Request):
        """Get statistics for both caches."""
        return {
            "request_cache": request.app.state.request_cache.get_stats(),
            "ttl_store": request.app.state.ttl_store.get_stats(),
        }

    @app.post("/cache/invalidate")
    def cache_invalidate(
        request: Request,
        prefix: str = Query(..., min_length=1, description="Key prefix to drop"),
    ):
        """Drop every entry whose key starts with prefix, in both caches."""
        return {
            "prefix": prefix,
            "request_cache": request.app.state.request_cache.invalidate_by_prefix(prefix),
            "ttl_store": request.app.state.ttl_store.delete_by_prefix(prefix),
        }

    @app.post("/cache/clear")
    def cache_clear(request: Request):
        """Empty both caches."""
        store = request.app.state.ttl_store
        store_size = len(store)
        store.clear()
        return {
            "request_cache": request.app.state.request_cache.clear(),
            "ttl_store": store_size,
        }

    return app


app = create_app()
