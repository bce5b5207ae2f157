"""Mapping between flat parameter vectors and per-layer weight matrices.

The flat layout is a fixed convention shared with previously trained models:
the vector starts with the output-side weight layer and walks backwards to the
input-side layer. Inside a layer the matrix is stored row-major, one neuron
after another, with that neuron's bias as its last element.
"""

from __future__ import annotations

import hashlib
from typing import List, Sequence

import numpy as np

from .errors import ShapeError
from .types import Array, NetworkShape


def unpack(params: Array, shape: NetworkShape) -> List[Array]:
    """Split ``params`` into weight layers ordered from the input side.

    Every returned matrix is a fresh copy, so callers may keep it after
    ``params`` is modified by a solver.
    """

    vec = np.asarray(params, dtype=np.float64).reshape(-1)
    expected = shape.param_count
    if vec.size != expected:
        raise ShapeError(
            f"Parameter vector has length {vec.size}, architecture "
            f"{shape.layer_sizes} requires {expected}"
        )
    layer_shapes = shape.layer_shapes
    layers: List[Array] = [np.empty(0)] * len(layer_shapes)
    offset = 0
    for idx in reversed(range(len(layer_shapes))):
        rows, cols = layer_shapes[idx]
        size = rows * cols
        layers[idx] = vec[offset : offset + size].reshape(rows, cols).copy()
        offset += size
    return layers


def _check_chain(layers: Sequence[Array]) -> List[Array]:
    if not layers:
        raise ShapeError("Cannot pack an empty layer sequence")
    mats = [np.asarray(layer, dtype=np.float64) for layer in layers]
    for idx, mat in enumerate(mats):
        if mat.ndim != 2:
            raise ShapeError(f"Weight layer {idx} must be 2-D, got shape {mat.shape}")
    for idx in range(len(mats) - 1):
        if mats[idx + 1].shape[1] != mats[idx].shape[0] + 1:
            raise ShapeError(
                f"Weight layer {idx + 1} has {mats[idx + 1].shape[1]} columns, "
                f"expected {mats[idx].shape[0] + 1} to follow layer {idx}"
            )
    return mats


def pack(layers: Sequence[Array]) -> Array:
    """Inverse of :func:`unpack`."""

    mats = _check_chain(layers)
    return np.concatenate([mat.reshape(-1) for mat in reversed(mats)])


def shape_of(layers: Sequence[Array]) -> NetworkShape:
    """Recover the :class:`NetworkShape` described by ``layers``."""

    _check_chain(layers)
    sizes = [int(layers[0].shape[1]) - 1]
    sizes.extend(int(layer.shape[0]) for layer in layers)
    return NetworkShape.from_sizes(sizes)


def adjoint_layers(layers: Sequence[Array]) -> List[Array]:
    """Bias-free weight matrices in reverse order, output side first."""

    return [np.asarray(layer)[:, :-1] for layer in reversed(layers)]


def weights_fingerprint(layers: Sequence[Array]) -> str:
    """Return a short digest identifying the exact values of ``layers``."""

    digest = hashlib.sha256()
    for layer in layers:
        mat = np.ascontiguousarray(layer, dtype=np.float64)
        digest.update(repr(mat.shape).encode("utf-8"))
        digest.update(mat.tobytes())
    return digest.hexdigest()[:16]


def init_params(shape: NetworkShape, seed: int = 0, scale: float = 1.0) -> Array:
    """Draw an initial parameter vector from a standard normal distribution."""

    rng = np.random.default_rng(seed)
    return rng.standard_normal(shape.param_count) * float(scale)


__all__ = [
    "unpack",
    "pack",
    "shape_of",
    "adjoint_layers",
    "weights_fingerprint",
    "init_params",
]
