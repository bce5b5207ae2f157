"""Static and recurrent training loops built on a least-squares solver."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Mapping, Sequence

import numpy as np

from ..core.errors import ConfigurationError, ShapeError
from ..core.network import MLP, evaluate
from ..core.recurrent import recur
from ..core.types import Array, EpochRecord, TrainingResult, TrainingStatus
from .solvers import LeastSquaresSolver, Objective, Solver, SolverResult

logger = logging.getLogger(__name__)


def _as_table(values: Array, name: str) -> Array:
    table = np.asarray(values, dtype=np.float64)
    if table.ndim == 1:
        table = table.reshape(-1, 1)
    if table.ndim != 2:
        raise ShapeError(f"{name} must be a 2-D table, got shape {table.shape}")
    return table


def static_objective(
    model: MLP,
    inputs: Array,
    targets: Array,
    *,
    probes: Array | None = None,
    output_mask: Array | None = None,
    derivative_mask: Array | None = None,
    mode: str = "input",
) -> Objective:
    """Residual function ``evaluate(params) - targets`` flattened for a solver.

    Without ``probes`` the targets are the plain network outputs. With probes
    every probe appends ``n_output`` (``mode="input"``) or ``n_input``
    (``mode="output"``) derivative columns after the output columns.
    """

    x = _as_table(inputs, "inputs")
    d = _as_table(targets, "targets")
    shape = model.shape
    if x.shape[1] != shape.n_input:
        raise ShapeError(f"inputs have {x.shape[1]} columns, network expects {shape.n_input}")
    if d.shape[0] != x.shape[0]:
        raise ShapeError(f"targets have {d.shape[0]} rows, inputs have {x.shape[0]}")
    width = shape.n_output
    if probes is not None:
        n_probes = np.atleast_2d(np.asarray(probes)).shape[0]
        per_probe = shape.n_output if mode == "input" else shape.n_input
        width += n_probes * per_probe
    if d.shape[1] != width:
        raise ShapeError(f"targets have {d.shape[1]} columns, model produces {width}")

    activation = model.activation

    def objective(params: Array) -> Array:
        predicted = evaluate(
            model.layers(params),
            activation,
            x,
            probes,
            output_mask=output_mask,
            derivative_mask=derivative_mask,
            mode=mode,
        )
        return (predicted - d).reshape(-1)

    return objective


def fit_static(
    model: MLP,
    params: Array,
    inputs: Array,
    targets: Array,
    *,
    solver: Solver | None = None,
    probes: Array | None = None,
    output_mask: Array | None = None,
    derivative_mask: Array | None = None,
    mode: str = "input",
    lower: Array | None = None,
    upper: Array | None = None,
    max_iterations: int | None = None,
) -> SolverResult:
    """Fit ``model`` to a static input/target table in a single solver call."""

    objective = static_objective(
        model,
        inputs,
        targets,
        probes=probes,
        output_mask=output_mask,
        derivative_mask=derivative_mask,
        mode=mode,
    )
    solver = solver or LeastSquaresSolver()
    return solver.solve(
        objective,
        np.asarray(params, dtype=np.float64).reshape(-1),
        lower=lower,
        upper=upper,
        max_iterations=max_iterations,
    )


@dataclass(frozen=True)
class RecurrentConfig:
    """Settings of the recurrent training loop.

    Attributes
    ----------
    ny:
        Output feedback order; the network sees ``y[n-1] ... y[n-ny]``.
    resnorm_target:
        The loop stops as ``CONVERGED`` once the solver reports a residual norm
        at or below this value.
    epoch_max:
        Upper bound on the number of epochs.
    iterations_per_epoch:
        Solver iterations allowed between two lag regenerations.
    """

    ny: int
    resnorm_target: float = 1e-3
    epoch_max: int = 1000
    iterations_per_epoch: int = 1

    def __post_init__(self) -> None:
        if self.ny < 0:
            raise ConfigurationError(f"ny must be non-negative, got {self.ny}")
        if self.epoch_max < 1:
            raise ConfigurationError(f"epoch_max must be >= 1, got {self.epoch_max}")
        if self.iterations_per_epoch < 1:
            raise ConfigurationError(
                f"iterations_per_epoch must be >= 1, got {self.iterations_per_epoch}"
            )
        if self.resnorm_target < 0:
            raise ConfigurationError(
                f"resnorm_target must be non-negative, got {self.resnorm_target}"
            )


class RecurrentTrainer:
    """Fit an autoregressive network by alternating solver steps and re-simulation.

    Each epoch fits the network to the targets using the lag matrix simulated
    with the previous epoch's weights, then re-simulates the lags with the new
    weights for the next epoch.
    """

    def __init__(
        self,
        model: MLP,
        config: RecurrentConfig,
        solver: Solver | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.model = model
        self.config = config
        self.solver = solver or LeastSquaresSolver()
        self.callbacks = list(callbacks or [])
        self.status = TrainingStatus.INIT

    def run(self, exogenous: Array, targets: Array, params: Array) -> TrainingResult:
        x = _as_table(exogenous, "exogenous")
        d = _as_table(targets, "targets")
        self._check_tables(x, d)
        cfg = self.config
        n_outputs = self.model.shape.n_output

        self.status = TrainingStatus.INIT
        current = np.array(params, dtype=np.float64).reshape(-1)
        if current.size != self.model.param_count:
            raise ShapeError(
                f"Initial parameter vector has length {current.size}, "
                f"network requires {self.model.param_count}"
            )
        outputs, lags = recur(self.model.predict, current, cfg.ny, x, n_outputs)

        trace: List[EpochRecord] = []
        best_params = current.copy()
        best_resnorm = float("inf")
        self.status = TrainingStatus.STEPPING
        logger.info(
            "Recurrent training: sizes=%s ny=%d target=%g epoch_max=%d",
            self.model.shape.layer_sizes,
            cfg.ny,
            cfg.resnorm_target,
            cfg.epoch_max,
        )

        while self.status is TrainingStatus.STEPPING:
            objective = self._objective(np.hstack([x, lags]), d)
            result = self.solver.solve(
                objective, current, max_iterations=cfg.iterations_per_epoch
            )
            current = np.array(result.params, dtype=np.float64).reshape(-1)
            outputs, lags = recur(self.model.predict, current, cfg.ny, x, n_outputs)

            epoch = len(trace) + 1
            resnorm = float(result.resnorm)
            trace.append(
                EpochRecord(
                    epoch=epoch,
                    layers=tuple(self.model.layers(current)),
                    resnorm=resnorm,
                    solver_status=int(result.status),
                )
            )
            if resnorm < best_resnorm:
                best_resnorm = resnorm
                best_params = current.copy()

            if resnorm <= cfg.resnorm_target:
                self.status = TrainingStatus.CONVERGED
            elif epoch >= cfg.epoch_max:
                self.status = TrainingStatus.MAX_EPOCHS_REACHED

            logger.debug("epoch=%d resnorm=%.6g", epoch, resnorm)
            self._emit_epoch(epoch, {"resnorm": resnorm, "best_resnorm": best_resnorm})

        logger.info(
            "Recurrent training finished: status=%s epochs=%d resnorm=%.6g",
            self.status.value,
            len(trace),
            trace[-1].resnorm,
        )
        return TrainingResult(
            status=self.status,
            params=current,
            best_params=best_params,
            best_resnorm=best_resnorm,
            trace=tuple(trace),
            outputs=outputs,
            lags=lags,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _check_tables(self, x: Array, d: Array) -> None:
        shape = self.model.shape
        if x.shape[0] != d.shape[0]:
            raise ShapeError(f"targets have {d.shape[0]} rows, exogenous has {x.shape[0]}")
        if d.shape[1] != shape.n_output:
            raise ShapeError(
                f"targets have {d.shape[1]} columns, network has {shape.n_output} outputs"
            )
        expected = x.shape[1] + self.config.ny * shape.n_output
        if expected != shape.n_input:
            raise ShapeError(
                f"network expects {shape.n_input} inputs but exogenous width "
                f"{x.shape[1]} plus {self.config.ny} lags of {shape.n_output} outputs "
                f"gives {expected}"
            )

    def _objective(self, regressor: Array, targets: Array) -> Objective:
        model = self.model

        def objective(params: Array) -> Array:
            return (model.predict(params, regressor) - targets).reshape(-1)

        return objective

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


def train_recurrent(
    model: MLP,
    exogenous: Array,
    targets: Array,
    params: Array,
    *,
    ny: int,
    resnorm_target: float = 1e-3,
    epoch_max: int = 1000,
    iterations_per_epoch: int = 1,
    solver: Solver | None = None,
    callbacks: Sequence[object] | None = None,
) -> TrainingResult:
    """Functional front-end for :class:`RecurrentTrainer`."""

    config = RecurrentConfig(
        ny=ny,
        resnorm_target=resnorm_target,
        epoch_max=epoch_max,
        iterations_per_epoch=iterations_per_epoch,
    )
    trainer = RecurrentTrainer(model, config, solver=solver, callbacks=callbacks)
    return trainer.run(exogenous, targets, params)


__all__ = [
    "static_objective",
    "fit_static",
    "RecurrentConfig",
    "RecurrentTrainer",
    "train_recurrent",
]
