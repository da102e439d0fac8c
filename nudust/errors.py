"""Custom exceptions for the :mod:`nudust` package."""
from __future__ import annotations


class NuDustError(Exception):
    """Base exception for nucleation/destruction preprocessing errors."""


class ConfigurationError(NuDustError, ValueError):
    """Invalid or missing configuration parameters, including unknown species keys."""


class PhysicsError(NuDustError, ValueError):
    """Non-physical property values supplied to a physics calculation."""


class InputFileError(NuDustError, RuntimeError):
    """A required input file is missing or holds a malformed numeric token."""


class IntegrationError(NuDustError, RuntimeError):
    """The ODE solver failed to integrate a cell."""


__all__ = [
    "NuDustError",
    "ConfigurationError",
    "PhysicsError",
    "InputFileError",
    "IntegrationError",
]
