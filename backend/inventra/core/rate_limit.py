"""
Rate Limiting Middleware
Sliding-window limits on authentication and ledger writes
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict, Tuple, Optional
import hashlib
import threading
import logging

logger = logging.getLogger(__name__)

# path prefix -> (requests, window seconds)
DEFAULT_LIMITS = {
    '/api/v1/auth/login': (5, 60),
    '/api/v1/auth/register': (3, 300),
    '/api/v1/auth/logout': (10, 60),
    '/api/v1/transactions': (30, 60),
    '/api/v1/returns': (30, 60),
    '/api/v1/customers/bulk-payment': (20, 60),
    '/api/v1/customers/fix-all-balances': (5, 60),
}
DEFAULT_LIMIT = (100, 60)

EXEMPT_PATHS = {'/health', '/api/v1/health'}


class RateLimiter:
    """Thread-safe in-memory limiter keyed on path and client"""

    def __init__(self, limits: Dict[str, Tuple[int, int]] = None, default: Tuple[int, int] = DEFAULT_LIMIT):
        self.limits = dict(DEFAULT_LIMITS if limits is None else limits)
        self.default = default
        self._requests: Dict[str, Deque[datetime]] = defaultdict(deque)
        self._lock = threading.Lock()

    def limit_for(self, path: str) -> Tuple[int, int]:
        """Longest matching prefix wins, so /transactions/7 shares the /transactions budget"""
        matches = [prefix for prefix in self.limits if path == prefix or path.startswith(prefix + '/')]
        if not matches:
            return self.default
        return self.limits[max(matches, key=len)]

    @staticmethod
    def client_key(request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
        else:
            ip = request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")

        # Authenticated clients get their own bucket even behind a shared IP
        token = ""
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
        token = token or request.cookies.get("access_token", "")
        if token:
            return f"{ip}:{hashlib.sha256(token.encode()).hexdigest()[:16]}"
        return f"{ip}:anonymous"

    def hit(self, path: str, client: str, now: datetime = None) -> Tuple[bool, Dict]:
        """Record one request; returns whether it is allowed plus header info"""
        now = now or datetime.now(timezone.utc)
        limit, window = self.limit_for(path)
        key = f"{path}:{client}"
        cutoff = now - timedelta(seconds=window)

        with self._lock:
            bucket = self._requests[key]
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= limit:
                retry_after = max(1, int((bucket[0] + timedelta(seconds=window) - now).total_seconds()))
                logger.warning("Rate limit exceeded for %s: %s/%s requests", key, len(bucket), limit)
                return False, {'limit': limit, 'remaining': 0, 'reset': retry_after, 'retry_after': retry_after}

            bucket.append(now)
            return True, {'limit': limit, 'remaining': limit - len(bucket), 'reset': window}

    def is_allowed(self, request: Request) -> Tuple[bool, Optional[Dict]]:
        path = request.url.path
        # Reads are free except on auth routes
        if request.method in ('GET', 'HEAD', 'OPTIONS') and not path.startswith('/api/v1/auth'):
            return True, None
        return self.hit(path, self.client_key(request))


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: RateLimiter = None):
        super().__init__(app)
        self.rate_limiter = limiter or RateLimiter()

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith('/api/') or path in EXEMPT_PATHS:
            return await call_next(request)

        is_allowed, rate_info = self.rate_limiter.is_allowed(request)
        if not is_allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    'detail': 'Too many requests. Please try again later.',
                    'retry_after': rate_info['retry_after']
                },
                headers={
                    'Retry-After': str(rate_info['retry_after']),
                    'X-RateLimit-Limit': str(rate_info['limit']),
                    'X-RateLimit-Remaining': '0',
                    'X-RateLimit-Reset': str(rate_info['reset'])
                }
            )

        response = await call_next(request)
        if rate_info:
            response.headers['X-RateLimit-Limit'] = str(rate_info['limit'])
            response.headers['X-RateLimit-Remaining'] = str(rate_info['remaining'])
            response.headers['X-RateLimit-Reset'] = str(rate_info['reset'])
        return response
