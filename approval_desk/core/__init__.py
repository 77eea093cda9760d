"""Core application utilities."""

from .config import Settings, get_settings
from .errors import (
    ApprovalDeskError,
    ConfigurationError,
    InvalidDecision,
    MissingRequiredField,
    NotFound,
    UpstreamUnavailable,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Errors
    "ApprovalDeskError",
    "ConfigurationError",
    "InvalidDecision",
    "MissingRequiredField",
    "NotFound",
    "UpstreamUnavailable",
]
