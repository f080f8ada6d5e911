from __future__ import annotations

from .retry_policy import FIRE_AND_FORGET, RetryConfig, retry_async

__all__ = ["FIRE_AND_FORGET", "RetryConfig", "retry_async"]
