"""Workers module - retry logic shared by the fetch step."""

from .retry import RetryHandler, RetryPolicy, RetryState

__all__ = ["RetryHandler", "RetryPolicy", "RetryState"]
