"""Exception hierarchy for adjointnets."""

from __future__ import annotations


class AdjointNetsError(Exception):
    """Base class for all errors raised by the engine."""


class ShapeError(AdjointNetsError, ValueError):
    """Array or parameter-vector dimensions disagree with the declared network."""


class ConfigurationError(AdjointNetsError, ValueError):
    """Invalid architecture, activation, probe or training settings."""


class StaleCacheError(ShapeError):
    """A forward-pass cache was paired with weights it was not computed from."""


__all__ = ["AdjointNetsError", "ShapeError", "ConfigurationError", "StaleCacheError"]
