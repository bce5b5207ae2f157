import numpy as np

from adjointnets import MLP, TrainingStatus, fit_static, train_recurrent
from adjointnets.data import get
from adjointnets.training.trainer import static_objective


def test_linear_target_converges():
    rng = np.random.default_rng(0)
    x = rng.uniform(-0.5, 0.5, size=(60, 1))
    d = 0.1 * x
    model = MLP.from_sizes([2, 3, 1])
    params = model.init_params(seed=1, scale=0.1)

    result = train_recurrent(
        model, x, d, params, ny=1, resnorm_target=1e-3, epoch_max=1000
    )

    assert result.status is TrainingStatus.CONVERGED
    assert result.epochs < 1000
    assert result.trace[-1].resnorm <= 1e-3
    assert result.best_resnorm <= 1e-3


def test_unreachable_target_stops_at_epoch_limit():
    rng = np.random.default_rng(5)
    x = rng.standard_normal((40, 1))
    d = rng.standard_normal((40, 1))
    model = MLP.from_sizes([2, 1, 1])
    params = model.init_params(seed=2, scale=0.5)

    result = train_recurrent(
        model, x, d, params, ny=1, resnorm_target=1e-12, epoch_max=5
    )

    assert result.status is TrainingStatus.MAX_EPOCHS_REACHED
    assert len(result.trace) == 5
    assert np.all(np.isfinite(result.resnorms))


def test_static_fit_with_derivative_columns_reduces_residual():
    spec = get("device_surface", n_vgs=5, n_vds=7)
    probes = np.asarray(spec.extra["probes"])
    model = MLP.from_sizes([2, 6, 1])
    params = model.init_params(seed=0, scale=0.5)
    objective = static_objective(model, spec.inputs, spec.targets, probes=probes)
    initial = float(objective(params) @ objective(params))

    result = fit_static(
        model, params, spec.inputs, spec.targets, probes=probes, max_iterations=30
    )

    assert result.resnorm < initial
    assert result.params.shape == params.shape
