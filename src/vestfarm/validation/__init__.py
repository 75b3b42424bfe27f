"""Invariant checks for engine state."""

from .sanity_checks import InvariantChecker, ValidationWarning, validate_engines

__all__ = [
    "InvariantChecker",
    "ValidationWarning",
    "validate_engines"
]
