"""Dataset registry and signal helpers."""

# Ensure built-in datasets register themselves when the package is imported.
from . import signals  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .registry import DatasetSpec, get, names, register_dataset

__all__ = ["DatasetSpec", "get", "names", "register_dataset", "signals"]
