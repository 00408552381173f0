"""Cached singleton factories for long-lived collaborators.

Usage:
    @service_factory
    def get_marketplace_client() -> MarketplaceClient:
        return MarketplaceClient(base_url=settings.marketplace_api_url)

    # Parameterized factories cache one instance per argument combination
    @service_factory
    def get_client_for(base_url: str) -> MarketplaceClient:
        return MarketplaceClient(base_url=base_url)
"""

import functools
import threading
from typing import Any, Callable, TypeVar, ParamSpec

P = ParamSpec("P")
T = TypeVar("T")


def service_factory(func: Callable[P, T]) -> Callable[P, T]:
    """Turn a factory function into a cached singleton factory.

    Instances are cached by argument values; a factory without arguments
    yields one instance per process.

    Args:
        func: Factory function that creates the instance

    Returns:
        Wrapped function returning the cached instance, with ``clear_cache``
        and ``cache_info`` attached
    """
    cache: dict[tuple, Any] = {}
    lock = threading.Lock()

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        key = (args, tuple(sorted(kwargs.items())))

        if key not in cache:
            with lock:
                # Double-check after acquiring lock
                if key not in cache:
                    cache[key] = func(*args, **kwargs)

        return cache[key]

    wrapper.clear_cache = lambda: cache.clear()  # type: ignore
    wrapper.cache_info = lambda: {"size": len(cache), "keys": list(cache.keys())}  # type: ignore

    return wrapper

