from functools import wraps
from fastapi import HTTPException, status
from typing import Dict, Tuple
import time

# TODO: move to Redis once the API runs on more than one instance
rate_limit_store: Dict[str, Tuple[int, float]] = {}

def rate_limit(times: int, minutes: int = 1):
    """
    Fixed-window rate limiting decorator for async endpoints.
    Args:
        times: Number of allowed requests
        minutes: Time window in minutes
    The endpoint must accept a ``request: Request`` keyword argument.
    """
    window = minutes * 60

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            request = kwargs.get('request')
            if not request or not request.client:
                return await func(*args, **kwargs)

            key = f"{func.__name__}:{request.client.host}"
            now = time.time()

            count, started = rate_limit_store.get(key, (0, now))
            if now - started >= window:
                count, started = 0, now
            if count >= times:
                retry_after = int(started + window - now) + 1
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Rate limit exceeded. Try again in {retry_after} seconds",
                    headers={"Retry-After": str(retry_after)},
                )
            rate_limit_store[key] = (count + 1, started)

            # Clean up old entries
            for k in list(rate_limit_store.keys()):
                if now - rate_limit_store[k][1] > window:
                    del rate_limit_store[k]

            return await func(*args, **kwargs)
        return wrapper
    return decorator
