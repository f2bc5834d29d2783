"""Error taxonomy for the documentation pipeline."""

from __future__ import annotations


class DredgerError(RuntimeError):
    """Base class for every error raised by dredger."""


class ConfigError(DredgerError):
    """Raised for invalid configuration; fatal before any network call."""


class InvalidBudget(ConfigError):
    """Raised when the chunk token budget is not a positive integer."""

    def __init__(self, budget: object) -> None:
        super().__init__(f"Token budget must be a positive integer, got {budget!r}")
        self.budget = budget


class UnsupportedModel(ConfigError):
    """Raised when no tokenizer profile is registered for a model name."""

    def __init__(self, model: str, reason: str | None = None) -> None:
        message = f"No tokenizer profile registered for model '{model}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.model = model


class InferenceError(DredgerError):
    """A per-chunk failure talking to the completion endpoint."""

    kind = "inference_error"
    transient = False


class EndpointUnavailable(InferenceError):
    """Connection-level failure or a server-side HTTP status."""

    kind = "endpoint_unavailable"
    transient = True


class Timeout(InferenceError):
    """The completion endpoint did not answer within the request timeout."""

    kind = "timeout"
    transient = True


class MalformedResponse(InferenceError):
    """The model answer could not be split into per-unit segments."""

    kind = "malformed_response"


class EndpointRejected(InferenceError):
    """The endpoint refused the request with a client-side HTTP status."""

    kind = "endpoint_rejected"


__all__ = [
    "ConfigError",
    "DredgerError",
    "EndpointRejected",
    "EndpointUnavailable",
    "InferenceError",
    "InvalidBudget",
    "MalformedResponse",
    "Timeout",
    "UnsupportedModel",
]
