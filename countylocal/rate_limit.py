"""Fixed-window in-memory rate limiting for public endpoints."""

import threading
import time
from dataclasses import dataclass
from functools import wraps
from flask import request, jsonify, current_app


@dataclass(frozen=True)
class RateLimit:
    max_requests: int
    window_seconds: int


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    """
    Fixed-window counter keyed by (bucket, client).

    State lives in process memory only; every worker keeps its own counters.
    """

    def __init__(self):
        self._windows = {}
        self._lock = threading.Lock()

    def check(self, key, limit, now=None):
        """
        Registers one hit for key.

        Returns:
            tuple: (allowed, remaining, reset_at)
        """
        timestamp = now if now is not None else time.time()
        with self._lock:
            self._purge_expired(timestamp)

            window = self._windows.get(key)
            if window is None:
                window = _Window(count=0, reset_at=timestamp + limit.window_seconds)
                self._windows[key] = window

            if window.count >= limit.max_requests:
                return False, 0, window.reset_at

            window.count += 1
            return True, limit.max_requests - window.count, window.reset_at

    def clear(self):
        with self._lock:
            self._windows.clear()

    def _purge_expired(self, now):
        expired = [key for key, window in self._windows.items() if window.reset_at <= now]
        for key in expired:
            del self._windows[key]


limiter = InMemoryRateLimiter()


def get_client_identifier(headers):
    """First X-Forwarded-For hop, then X-Real-IP, then 'unknown'."""
    forwarded = headers.get('X-Forwarded-For')
    if forwarded:
        first = forwarded.split(',')[0].strip()
        if first:
            return first
    real_ip = headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()
    return 'unknown'


def get_limit(bucket):
    limits = current_app.config['RATE_LIMITS']
    max_requests, window_seconds = limits.get(bucket, limits['default'])
    return RateLimit(max_requests=max_requests, window_seconds=window_seconds)


def rate_limited(bucket='default'):
    """
    Decorator rejecting requests over the bucket's limit with 429.

    Usage:
        @bp.route('/vouchers/issue', methods=['POST'])
        @rate_limited('issue')
        def issue_voucher_route():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            client = get_client_identifier(request.headers)
            limit = get_limit(bucket)
            now = time.time()
            allowed, remaining, reset_at = limiter.check(f"{bucket}:{client}", limit, now=now)

            if not allowed:
                retry_after = max(1, int(reset_at - now + 0.999))
                current_app.logger.warning(f"Rate limit exceeded for {client} on bucket '{bucket}'")
                response = jsonify({"success": False, "error": "Too many requests", "error_code": 429})
                response.status_code = 429
                response.headers['Retry-After'] = str(retry_after)
                response.headers['X-RateLimit-Limit'] = str(limit.max_requests)
                response.headers['X-RateLimit-Remaining'] = '0'
                return response

            return f(*args, **kwargs)

        return decorated_function
    return decorator
