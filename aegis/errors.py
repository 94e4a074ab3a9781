"""Exception hierarchy shared by the engine and its providers."""
from __future__ import annotations


class AegisError(Exception):
    """Base class for all engine errors."""


class DataUnavailableError(AegisError):
    """A provider returned nothing or failed to respond."""


class ProviderValidationError(AegisError):
    """A provider responded with a payload we cannot interpret."""


class RequestValidationError(AegisError, ValueError):
    """An inbound request is malformed and never enters the pipeline."""


class ExecutionError(AegisError):
    """Quoting or building a transaction failed."""


class ConfigurationError(AegisError, ValueError):
    """Required settings are missing or out of range."""


class DuplicateActionError(AegisError):
    """A pending action with the same id is already registered."""
