"""Completion endpoint client and retry policy."""

from .client import CompletionRequest, InferenceClient
from .retry import RetryPolicy, RetryState, RetryTracker

__all__ = ["CompletionRequest", "InferenceClient", "RetryPolicy", "RetryState", "RetryTracker"]
