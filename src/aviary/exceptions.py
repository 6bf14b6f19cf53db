from __future__ import annotations


class AviaryError(Exception):
    """Base class for all aviary-specific exceptions."""


class ConfigurationError(AviaryError):
    """Raised when simulation parameters are invalid.

    Accepts either a single message or a parameter name plus a reason:
    ``ConfigurationError("max_speed", "must be positive")``.
    """

    def __init__(self, param_name: str | None = None, reason: str | None = None):
        if param_name and reason:
            message = f"Invalid configuration for '{param_name}': {reason}"
            self.param_name = param_name
        else:
            message = param_name if param_name else "Invalid configuration"
            self.param_name = None
        self.reason = reason
        super().__init__(message)
