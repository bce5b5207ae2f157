"""Pointwise activation functions and their analytic derivatives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .errors import ConfigurationError
from .types import Array

ActivationFn = Callable[[Array], Array]


def tanh(x: Array) -> Array:
    """Return the hyperbolic tangent of ``x``."""

    return np.tanh(x)


def tanh_deriv(x: Array) -> Array:
    """Derivative of :func:`tanh` evaluated at the pre-activation ``x``."""

    return 1.0 - np.tanh(x) ** 2


def sigmoid(x: Array) -> Array:
    """Return the logistic sigmoid of ``x``."""

    return 1.0 / (1.0 + np.exp(-x))


def sigmoid_deriv(x: Array) -> Array:
    s = sigmoid(x)
    return s * (1.0 - s)


@dataclass(frozen=True)
class Activation:
    """An activation function paired with its derivative.

    Both callables take the pre-activation ``gamma``; the derivative is never
    evaluated on the activated value.
    """

    name: str
    fn: ActivationFn
    deriv: ActivationFn

    def __call__(self, x: Array) -> Array:
        return self.fn(x)


class ActivationRegistry:
    """Central registry for activation functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Activation] = {}

    def register(self, name: str, fn: ActivationFn, deriv: ActivationFn) -> None:
        self._registry[name] = Activation(name, fn, deriv)

    def get(self, name: str) -> Activation:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(sorted(self._registry))
            raise ConfigurationError(
                f"Unknown activation {name!r}. Available activations: {available}"
            ) from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, activation: str | Activation) -> Activation:
        if isinstance(activation, Activation):
            return activation
        return self.get(str(activation))


REGISTRY = ActivationRegistry()

REGISTRY.register("tanh", tanh, tanh_deriv)
REGISTRY.register("sigmoid", sigmoid, sigmoid_deriv)
# Alias used by the logistic naming in circuit-modelling literature
REGISTRY.register("logistic", sigmoid, sigmoid_deriv)

__all__ = [
    "Activation",
    "ActivationRegistry",
    "REGISTRY",
    "tanh",
    "tanh_deriv",
    "sigmoid",
    "sigmoid_deriv",
]
