"""
Middleware package exports.
"""

from middleware.request_id import RequestIDMiddleware
from middleware.rate_limiter import limiter, get_request_key

__all__ = ["RequestIDMiddleware", "limiter", "get_request_key"]
