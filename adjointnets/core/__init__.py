"""Core numerical primitives for adjointnets."""

from . import activations, errors, network, packing, recurrent, types

__all__ = ["activations", "errors", "network", "packing", "recurrent", "types"]
