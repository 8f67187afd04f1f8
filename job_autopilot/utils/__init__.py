"""
Utility modules for the job autopilot application.
"""

from .config import Config
from .rate_limit import RateLimiter, RateLimitResult

__all__ = [
    "Config",
    "RateLimiter",
    "RateLimitResult",
]
