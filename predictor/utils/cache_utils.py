"""
Cache utilities for the prediction pool
Ranking responses are cached and dropped whenever points change
"""

import functools

from flask import current_app, request

from predictor import cache


def make_cache_key(*args, **kwargs):
    """Generate a cache key from request path, query string and arguments"""
    path = request.path
    query = request.query_string.decode("utf-8", "replace")
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{path}_{query}_{args_str}_{kwargs_str}".replace("/", "_")


def cached_route(timeout=None, key_prefix="view"):
    """
    Decorator for caching route responses

    Args:
        timeout: Cache timeout in seconds (default RANKINGS_CACHE_TIMEOUT)
        key_prefix: Prefix for cache key
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = f"{key_prefix}_{make_cache_key(*args, **kwargs)}"

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            if isinstance(result, tuple):
                # (body, status) error responses are not cached
                return result

            cache.set(
                cache_key,
                result,
                timeout=timeout or current_app.config.get("RANKINGS_CACHE_TIMEOUT"),
            )
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_rankings_cache(reason=None):
    """
    Drop cached ranking responses

    SimpleCache cannot delete by prefix, so the whole cache is cleared.

    Args:
        reason: Free text for the log line
    """
    try:
        cache.clear()
        current_app.logger.info(f"Rankings cache cleared ({reason or 'manual'})")
    except Exception as e:
        current_app.logger.error(f"Failed to clear rankings cache: {e}")
