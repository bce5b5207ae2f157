"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping

import numpy as np

from ..core.errors import ShapeError
from ..core.types import Array

DatasetKinds = "static", "recurrent"


@dataclass(frozen=True)
class DatasetSpec:
    """In-memory training tables.

    Attributes
    ----------
    name:
        Registry name the dataset was built from.
    kind:
        ``"static"`` for plain input/target tables or ``"recurrent"`` when
        ``inputs`` holds only the exogenous columns of a time sequence.
    inputs:
        ``(n_samples, n_columns)`` input table.
    targets:
        ``(n_samples, n_targets)`` target table. Static datasets with
        derivative data append the derivative columns after the values.
    provenance:
        Parameters used to generate the tables, recorded in run manifests.
    extra:
        Free-form metadata such as derivative probes or the sampling grid.
    """

    name: str
    kind: str
    inputs: Array
    targets: Array
    provenance: Dict[str, Any]
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind not in DatasetKinds:
            raise ValueError(f"Unknown dataset kind: {self.kind}")
        if np.ndim(self.inputs) != 2 or np.ndim(self.targets) != 2:
            raise ShapeError("Dataset inputs and targets must be 2-D tables")
        if self.inputs.shape[0] != self.targets.shape[0]:
            raise ShapeError(
                f"Dataset {self.name!r} has {self.inputs.shape[0]} input rows "
                f"but {self.targets.shape[0]} target rows"
            )

    @property
    def n_samples(self) -> int:
        return int(self.inputs.shape[0])


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory, directly or as a decorator."""

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    return _decorator


def get(name: str, **options: Any) -> DatasetSpec:
    """Build the dataset registered under ``name``."""

    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown dataset {name!r}. Available datasets: {available}")
    return _REGISTRY[name](**options)


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


__all__ = ["DatasetSpec", "register_dataset", "get", "names"]
