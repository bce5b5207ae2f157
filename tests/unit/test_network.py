import numpy as np
import pytest

from adjointnets.core.errors import ConfigurationError, ShapeError, StaleCacheError
from adjointnets.core.network import MLP, adjoint, evaluate, forward
from adjointnets.core.packing import init_params, unpack
from adjointnets.core.types import NetworkShape


def _net(sizes, seed=0, scale=0.7):
    shape = NetworkShape.from_sizes(sizes)
    return unpack(init_params(shape, seed=seed, scale=scale), shape)


def _jacobian(layers, activation, x, h=1e-6):
    """Central-difference Jacobian, shape (n_samples, n_output, n_input)."""

    outputs, _ = forward(layers, activation, x)
    jac = np.zeros((x.shape[0], outputs.shape[1], x.shape[1]))
    for j in range(x.shape[1]):
        step = np.zeros(x.shape[1])
        step[j] = h
        plus, _ = forward(layers, activation, x + step)
        minus, _ = forward(layers, activation, x - step)
        jac[:, :, j] = (plus - minus) / (2 * h)
    return jac


def test_forward_shapes_and_determinism():
    layers = _net([3, 6, 4, 2])
    x = np.random.default_rng(1).standard_normal((9, 3))
    out_a, state = forward(layers, "tanh", x)
    out_b, _ = forward(layers, "tanh", x)
    assert out_a.shape == (9, 2)
    np.testing.assert_array_equal(out_a, out_b)
    assert [entry.gamma.shape for entry in state.cache] == [(9, 6), (9, 4)]
    assert state.n_samples == 9


@pytest.mark.parametrize("num_hidden", [1, 2, 3, 4, 5])
def test_forward_shape_for_every_depth(num_hidden):
    hidden = [3 + h for h in range(num_hidden)]
    layers = _net([4, *hidden, 2], seed=num_hidden)
    x = np.random.default_rng(num_hidden).standard_normal((11, 4))
    out, state = forward(layers, "tanh", x)
    assert out.shape == (11, 2)
    assert len(state.cache) == num_hidden
    for entry, width in zip(state.cache, hidden):
        assert entry.gamma.shape == (11, width)
        assert entry.z.shape == (11, width)


def test_zero_weights_give_zero_output():
    layers = [np.zeros((5, 3)), np.zeros((1, 6))]
    out, _ = forward(layers, "tanh", np.ones((4, 2)))
    np.testing.assert_array_equal(out, np.zeros((4, 1)))


def test_output_layer_is_linear():
    layers = [np.zeros((1, 2)), np.array([[3.0, -1.5]])]
    out, _ = forward(layers, "tanh", np.array([[10.0]]))
    np.testing.assert_allclose(out, [[-1.5]])


def test_single_sample_vector_is_one_row():
    layers = _net([2, 3, 1])
    out, state = forward(layers, "tanh", np.array([0.2, -0.4]))
    assert out.shape == (1, 1)
    assert state.n_samples == 1


def test_input_width_mismatch_raises():
    layers = _net([2, 3, 1])
    with pytest.raises(ShapeError):
        forward(layers, "tanh", np.ones((4, 3)))


@pytest.mark.parametrize("activation", ["tanh", "sigmoid"])
def test_adjoint_matches_central_difference(activation):
    layers = _net([2, 5, 1], seed=3)
    x = np.random.default_rng(2).uniform(-1, 1, size=(7, 2))
    _, state = forward(layers, activation, x)
    derivs = adjoint(layers, state, np.eye(2))
    jac = _jacobian(layers, activation, x)
    assert derivs.shape == (7, 2)
    np.testing.assert_allclose(derivs[:, 0], jac[:, 0, 0], rtol=1e-4, atol=1e-8)
    np.testing.assert_allclose(derivs[:, 1], jac[:, 0, 1], rtol=1e-4, atol=1e-8)


def test_input_mode_blocks_hold_one_column_per_output():
    layers = _net([3, 4, 4, 2], seed=5)
    x = np.random.default_rng(3).uniform(-1, 1, size=(6, 3))
    _, state = forward(layers, "tanh", x)
    derivs = adjoint(layers, state, np.eye(3), mode="input")
    jac = _jacobian(layers, "tanh", x)
    assert derivs.shape == (6, 3 * 2)
    for j in range(3):
        np.testing.assert_allclose(
            derivs[:, 2 * j : 2 * j + 2], jac[:, :, j], rtol=1e-4, atol=1e-8
        )


def test_output_mode_is_the_reverse_sweep():
    layers = _net([3, 4, 4, 2], seed=5)
    x = np.random.default_rng(3).uniform(-1, 1, size=(6, 3))
    _, state = forward(layers, "tanh", x)
    derivs = adjoint(layers, state, np.eye(2), mode="output")
    jac = _jacobian(layers, "tanh", x)
    assert derivs.shape == (6, 2 * 3)
    for k in range(2):
        np.testing.assert_allclose(
            derivs[:, 3 * k : 3 * k + 3], jac[:, k, :], rtol=1e-4, atol=1e-8
        )


def test_general_probe_is_a_directional_derivative():
    layers = _net([2, 5, 1], seed=8)
    x = np.random.default_rng(4).uniform(-1, 1, size=(5, 2))
    _, state = forward(layers, "tanh", x)
    direction = np.array([0.3, -2.0])
    derivs = adjoint(layers, state, direction)
    jac = _jacobian(layers, "tanh", x)
    np.testing.assert_allclose(derivs[:, 0], jac[:, 0, :] @ direction, rtol=1e-4, atol=1e-8)


def test_stale_cache_is_rejected():
    layers = _net([2, 5, 1])
    _, state = forward(layers, "tanh", np.ones((3, 2)))
    layers[0][0, 0] += 1.0
    with pytest.raises(StaleCacheError):
        adjoint(layers, state, np.eye(2))


def test_forward_state_keeps_its_own_weights():
    layers = _net([2, 3, 1])
    _, state = forward(layers, "tanh", np.ones((2, 2)))
    layers[1][:] = 0.0
    assert np.any(state.weights[1] != 0.0)


def test_weights_digest_is_computed_only_for_adjoint():
    layers = _net([2, 3, 1])
    _, state = forward(layers, "tanh", np.ones((2, 2)))
    assert "fingerprint" not in vars(state)
    adjoint(layers, state, np.eye(2))
    assert "fingerprint" in vars(state)


def test_probe_width_mismatch_raises():
    layers = _net([2, 5, 1])
    _, state = forward(layers, "tanh", np.ones((3, 2)))
    with pytest.raises(ConfigurationError):
        adjoint(layers, state, np.eye(3))
    with pytest.raises(ConfigurationError):
        adjoint(layers, state, np.eye(2), output_mask=np.ones((2, 3)))
    with pytest.raises(ConfigurationError):
        adjoint(layers, state, np.eye(2), mode="sideways")


def test_output_mask_scales_each_probe_block():
    layers = _net([2, 5, 1], seed=1)
    x = np.random.default_rng(5).standard_normal((4, 2))
    _, state = forward(layers, "tanh", x)
    full = adjoint(layers, state, np.eye(2))
    masked = adjoint(layers, state, np.eye(2), np.array([[1.0], [0.0]]))
    np.testing.assert_array_equal(masked[:, 0], full[:, 0])
    np.testing.assert_array_equal(masked[:, 1], np.zeros(4))
    shared = adjoint(layers, state, np.eye(2), np.array([2.0]))
    np.testing.assert_allclose(shared, 2.0 * full)


def test_single_row_mask_applies_to_every_probe():
    layers = _net([3, 4, 2], seed=6)
    x = np.random.default_rng(8).standard_normal((5, 3))
    _, state = forward(layers, "tanh", x)
    full = adjoint(layers, state, np.eye(3))
    masked = adjoint(layers, state, np.eye(3), np.array([[1.0, 0.0]]))
    assert masked.shape == (5, 6)
    np.testing.assert_array_equal(masked[:, 0::2], full[:, 0::2])
    np.testing.assert_array_equal(masked[:, 1::2], np.zeros((5, 3)))


def test_no_probes_gives_empty_block():
    layers = _net([2, 3, 1])
    _, state = forward(layers, "tanh", np.ones((3, 2)))
    assert adjoint(layers, state, np.empty((0, 2))).shape == (3, 0)


def test_evaluate_appends_derivatives_after_outputs():
    layers = _net([2, 5, 1], seed=2)
    x = np.random.default_rng(6).standard_normal((5, 2))
    outputs, state = forward(layers, "tanh", x)
    combined = evaluate(layers, "tanh", x, np.eye(2))
    assert combined.shape == (5, 3)
    np.testing.assert_array_equal(combined[:, :1], outputs)
    np.testing.assert_array_equal(combined[:, 1:], adjoint(layers, state, np.eye(2)))
    silenced = evaluate(layers, "tanh", x, np.eye(2), output_mask=[0.0])
    np.testing.assert_array_equal(silenced[:, 0], np.zeros(5))
    np.testing.assert_array_equal(evaluate(layers, "tanh", x), outputs)


def test_mlp_binds_config_to_flat_parameters():
    model = MLP.from_sizes([2, 5, 1], activation="sigmoid")
    params = model.init_params(seed=3)
    x = np.random.default_rng(7).standard_normal((4, 2))
    layers = unpack(params, model.shape)
    expected, state = forward(layers, "sigmoid", x)
    np.testing.assert_array_equal(model(params, x), expected)
    np.testing.assert_array_equal(
        model.sensitivities(params, x, np.eye(2)), adjoint(layers, state, np.eye(2))
    )
    assert model.param_count == 21
