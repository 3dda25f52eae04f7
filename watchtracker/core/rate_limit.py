"""
Simple in-memory rate limiter for API endpoints.
"""
import logging
import time
from collections import defaultdict
from typing import Dict
from fastapi import Request, HTTPException, status

logger = logging.getLogger(__name__)

# {key: [timestamp, ...]}
rate_limit_store: Dict[str, list] = defaultdict(list)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


def check_rate_limit(
    key: str,
    max_requests: int = 10,
    window_seconds: int = 60,
    message: str = None,
) -> None:
    """
    Check if ``key`` has exceeded its rate limit and record the request.

    Args:
        key: Bucket identifier (client IP, or email plus IP)
        max_requests: Maximum number of requests allowed
        window_seconds: Time window in seconds
        message: Error message for the 429 response

    Raises:
        HTTPException: 429 with ``retryAfter`` (seconds) if rate limit exceeded
    """
    now = time.time()

    cutoff = now - window_seconds
    rate_limit_store[key] = [
        timestamp for timestamp in rate_limit_store[key]
        if timestamp > cutoff
    ]

    request_count = len(rate_limit_store[key])

    if request_count >= max_requests:
        logger.warning(f"Rate limit exceeded for {key} ({request_count} requests in {window_seconds}s)")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": message or f"Rate limit exceeded. Maximum {max_requests} requests per {window_seconds} seconds.",
                "retryAfter": window_seconds,
            },
        )

    rate_limit_store[key].append(now)

    logger.debug(f"Rate limit check passed for {key} ({request_count + 1}/{max_requests})")


def reset_rate_limits() -> None:
    rate_limit_store.clear()
