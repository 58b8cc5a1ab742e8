from functools import lru_cache

from shared.config.settings import get_settings

from .repository import OrderStore, create_order_store


@lru_cache
def get_order_store() -> OrderStore:
    """One store per process, built from settings; FastAPI dependency."""
    return create_order_store(get_settings().store)
