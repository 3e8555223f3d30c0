"""Test the bound transforms and the wrapped log-density target."""

import numdifftools as nd
import numpy as np
import pytest

from pymultichain.bounds import (
    BoundTransform,
    LogDensityTarget,
    TransformCase,
    transform_cases,
)
from pymultichain.utils.exceptions import ConfigError, DomainError
from pymultichain.utils.model import FunctionModel

# One coordinate of each case: unbounded, lower only, upper only, box.
LOWER = [-np.inf, 0.5, -np.inf, -2.0]
UPPER = [np.inf, np.inf, 3.0, 1.0]


@pytest.fixture
def transform():
    """Transform with one coordinate per case."""
    return BoundTransform.from_bounds(LOWER, UPPER, n_pars=4)


def gaussian_nll(x):
    return 0.5 * np.sum((x - 0.25) ** 2 / 0.8**2)


def gaussian_nll_grad(x):
    return (x - 0.25) / 0.8**2


def test_transform_cases():
    """Test that every combination of bounds maps to the right case."""
    cases = transform_cases(np.array(LOWER), np.array(UPPER))
    assert cases == (
        TransformCase.UNBOUNDED,
        TransformCase.LOWER_ONLY,
        TransformCase.UPPER_ONLY,
        TransformCase.BOX,
    )


def test_missing_bound_vectors_are_filled():
    """Test that a missing lower or upper vector means no bound on that side."""
    only_lower = BoundTransform.from_bounds([0.0, -np.inf], None, n_pars=2)
    assert only_lower.cases == (TransformCase.LOWER_ONLY, TransformCase.UNBOUNDED)
    assert np.all(np.isinf(only_lower.upper))

    only_upper = BoundTransform.from_bounds(None, [np.inf, 1.0], n_pars=2)
    assert only_upper.cases == (TransformCase.UNBOUNDED, TransformCase.UPPER_ONLY)
    assert not BoundTransform.from_bounds(None, None, n_pars=2).bounded


class TestRoundTrip:
    """Test that forward undoes inverse for interior points."""

    @pytest.mark.parametrize(
        "x",
        [
            [0.0, 0.5001, 2.999, -1.999],
            [-100.0, 1.0, 0.0, 0.0],
            [3.7, 1e4, -1e4, 0.999],
            [1e-8, 0.5 + 1e-9, 3.0 - 1e-9, -2.0 + 1e-9],
        ],
    )
    def test_forward_inverse(self, transform, x):
        x = np.array(x)
        np.testing.assert_allclose(transform.forward(transform.inverse(x)), x, rtol=1e-9, atol=1e-12)

    def test_batch_of_points(self, transform):
        """Test that rows of a 2D array are transformed independently."""
        rng = np.random.default_rng(3)
        y = rng.normal(0.0, 3.0, size=(25, 4))
        x = transform.forward(y)
        assert x.shape == y.shape
        for row_y, row_x in zip(y, x):
            np.testing.assert_allclose(transform.forward(row_y), row_x)
        np.testing.assert_allclose(transform.inverse(x), y, rtol=1e-8, atol=1e-8)

    def test_forward_stays_inside_bounds(self, transform):
        y = np.linspace(-20, 20, 41)[:, np.newaxis] * np.ones(4)
        x = transform.forward(y)
        assert np.all(x[:, 1] > 0.5)
        assert np.all(x[:, 2] < 3.0)
        assert np.all((x[:, 3] > -2.0) & (x[:, 3] < 1.0))

    @pytest.mark.parametrize("y_value", [-800.0, -40.0, 40.0, 800.0])
    def test_extreme_points_stay_strictly_inside(self, transform, y_value):
        """Far tails would round onto a bound without clipping."""
        x = transform.forward(np.full(4, y_value))
        if y_value < 0:
            # lower-only, upper-only and box coordinates all approach a bound
            assert x[1] > 0.5
            assert x[2] < 3.0
            assert x[3] > -2.0
            near_bound = [1, 2, 3]
        else:
            assert x[3] < 1.0
            near_bound = [3]
        # draws taken from the tails are valid initial values
        y = transform.inverse(x)
        assert np.all(np.isfinite(y[near_bound]))


class TestScale:
    """Test the derivative terms against numerical differentiation."""

    @pytest.mark.parametrize("y_value", [-15.0, -6.0, -1.5, 0.0, 0.7, 4.0, 15.0])
    def test_scale_matches_numerical_derivative(self, transform, y_value):
        y = np.full(4, y_value)
        jacobian = nd.Jacobian(transform.forward)(y)
        np.testing.assert_allclose(np.diag(jacobian), transform.scale(y), rtol=1e-6, atol=1e-8)

    def test_upper_only_scale_is_negative(self, transform):
        assert transform.scale(np.zeros(4))[2] == pytest.approx(-1.0)

    @pytest.mark.parametrize("y_value", [-8.0, -1.0, 0.0, 2.5, 8.0])
    def test_log_abs_scale(self, transform, y_value):
        y = np.full(4, y_value)
        np.testing.assert_allclose(
            transform.log_abs_scale(y), np.log(np.abs(transform.scale(y))), rtol=1e-10
        )

    def test_log_abs_scale_finite_in_tails(self, transform):
        y = np.full(4, 800.0)
        assert np.all(np.isfinite(transform.log_abs_scale(-y)))
        assert np.isfinite(transform.log_abs_scale(y)[3])

    @pytest.mark.parametrize("y_value", [-6.0, -1.0, 0.0, 0.3, 6.0])
    def test_scale_derivative_is_derivative_of_log_scale(self, transform, y_value):
        y = np.full(4, y_value)
        jacobian = nd.Jacobian(transform.log_abs_scale)(y)
        np.testing.assert_allclose(
            np.diag(jacobian), transform.scale_derivative(y), rtol=1e-6, atol=1e-8
        )

    def test_unbounded_terms(self, transform):
        y = np.array([2.0, 0.0, 0.0, 0.0])
        assert transform.forward(y)[0] == 2.0
        assert transform.scale(y)[0] == 1.0
        assert transform.scale_derivative(y)[0] == 0.0


class TestBoundaryRejection:
    """Test that inverse rejects points on or outside the bounds."""

    @pytest.mark.parametrize(
        "index, value",
        [
            (1, 0.5),  # on the lower bound
            (1, 0.0),  # below the lower bound
            (2, 3.0),  # on the upper bound
            (2, 4.0),  # above the upper bound
            (3, -2.0),  # on the box lower bound
            (3, 1.0),  # on the box upper bound
            (3, 5.0),  # outside the box
            (3, np.nan),
        ],
    )
    def test_inverse_rejects(self, transform, index, value):
        x = np.array([0.0, 1.0, 0.0, 0.0])
        x[index] = value
        with pytest.raises(DomainError):
            transform.inverse(x)

    def test_unknown_case(self):
        with pytest.raises(DomainError):
            BoundTransform(np.zeros(1), np.ones(1), ("sideways",))


class TestBoundValidation:
    """Test the configuration checks on bound vectors."""

    def test_wrong_length(self):
        with pytest.raises(ConfigError):
            BoundTransform.from_bounds([0.0], [1.0, 2.0], n_pars=2)

    def test_lower_not_below_upper(self):
        with pytest.raises(ConfigError):
            BoundTransform.from_bounds([0.0, 1.0], [1.0, 1.0], n_pars=2)

    def test_nan_bound(self):
        with pytest.raises(ConfigError):
            BoundTransform.from_bounds([np.nan], None, n_pars=1)

    def test_empty_infinite_bound(self):
        with pytest.raises(ConfigError):
            BoundTransform.from_bounds([np.inf], None, n_pars=1)

    def test_bounds_are_immutable(self, transform):
        with pytest.raises(ValueError):
            transform.lower[0] = 0.0


class TestLogDensityTarget:
    """Test the log-density handed to the samplers."""

    @pytest.fixture
    def model(self):
        return FunctionModel(gaussian_nll, gaussian_nll_grad, par=[0.0, 1.0, 0.0, 0.0])

    def test_unbounded_target_negates_model(self, model):
        target = LogDensityTarget(model)
        x = np.array([0.3, -0.2, 1.0, 0.5])
        assert target.log_density(x) == pytest.approx(-gaussian_nll(x))
        np.testing.assert_allclose(target.gradient(x), -gaussian_nll_grad(x))

    def test_bounded_target_includes_jacobian(self, model, transform):
        target = LogDensityTarget(model, transform)
        y = np.array([0.3, -0.2, 1.0, 0.5])
        x = transform.forward(y)
        expected = -gaussian_nll(x) + np.sum(np.log(np.abs(transform.scale(y))))
        assert target.log_density(y) == pytest.approx(expected)

    @pytest.mark.parametrize("y", [[0.3, -0.2, 1.0, 0.5], [-2.0, 1.5, -1.0, -3.0]])
    def test_gradient_matches_numerical_gradient(self, model, transform, y):
        target = LogDensityTarget(model, transform)
        y = np.array(y)
        numerical = nd.Gradient(target.log_density)(y)
        np.testing.assert_allclose(target.gradient(y), numerical, rtol=1e-6, atol=1e-8)
