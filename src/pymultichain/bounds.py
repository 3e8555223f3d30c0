"""Transforms between bounded model space and unbounded sampling space.

Samplers in this package assume every parameter can take any real value.
Parameters declared with a lower bound, an upper bound or both are sampled in
an auxiliary unconstrained space ``y`` and mapped back to the model space
``x`` coordinate by coordinate:

- unbounded:  x = y
- lower only: x = a + exp(y)
- upper only: x = b - exp(y)
- box:        x = a + (b - a) * sigmoid(y)

Sampling in ``y`` requires the density to be multiplied by the Jacobian of
the map, so the log-density handed to a sampler is

    fn(y) = -objective(x(y)) + sum(log|dx/dy|)

with gradient

    gr(y) = -gradient(x(y)) * dx/dy + d log|dx/dy| / dy

where ``objective`` is the negative log-density of the model.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum, auto

import numpy as np
from scipy.special import expit, log_expit

from .utils.exceptions import ConfigError, DomainError
from .utils.types import FloatArray, IntArray, ModelHandle

logger = logging.getLogger(__name__)


class TransformCase(StrEnum):
    """Enum for the per-parameter transform applied to a coordinate."""

    UNBOUNDED = auto()
    LOWER_ONLY = auto()
    UPPER_ONLY = auto()
    BOX = auto()


def transform_cases(lower: FloatArray, upper: FloatArray) -> tuple[TransformCase, ...]:
    """Derive the transform case of every coordinate from its bounds.

    Parameters
    ----------
    lower : FloatArray
        Lower bounds, ``-inf`` where a coordinate has none.
    upper : FloatArray
        Upper bounds, ``inf`` where a coordinate has none.

    Returns
    -------
    tuple of TransformCase
        One case per coordinate.
    """
    cases = []
    for a, b in zip(lower, upper):
        if np.isinf(a) and np.isinf(b):
            cases.append(TransformCase.UNBOUNDED)
        elif np.isinf(b):
            cases.append(TransformCase.LOWER_ONLY)
        elif np.isinf(a):
            cases.append(TransformCase.UPPER_ONLY)
        else:
            cases.append(TransformCase.BOX)
    return tuple(cases)


@dataclass(frozen=True, eq=False)
class BoundTransform:
    """Immutable transform context for one sampling run.

    Instances are normally built with :meth:`from_bounds`, which validates the
    bounds and derives the transform cases. All methods are pure and accept a
    single point of shape ``(n_pars,)`` or a batch of points of shape
    ``(n_points, n_pars)``.
    """

    lower: FloatArray
    upper: FloatArray
    cases: tuple[TransformCase, ...]
    _lower_idx: IntArray = field(init=False, repr=False)
    _upper_idx: IntArray = field(init=False, repr=False)
    _box_idx: IntArray = field(init=False, repr=False)

    def __post_init__(self):
        """Post-initialization checks."""
        lower = np.array(self.lower, dtype=float)
        upper = np.array(self.upper, dtype=float)
        if lower.shape != upper.shape or lower.shape != (len(self.cases),):
            raise ConfigError(
                "lower, upper and cases must all have one entry per parameter."
            )
        for i, case in enumerate(self.cases):
            if not isinstance(case, TransformCase):
                raise DomainError(f"Unrecognised transform case {case!r} for parameter {i}.")
        lower.flags.writeable = False
        upper.flags.writeable = False
        object.__setattr__(self, "lower", lower)
        object.__setattr__(self, "upper", upper)
        object.__setattr__(self, "_lower_idx", self._indices(TransformCase.LOWER_ONLY))
        object.__setattr__(self, "_upper_idx", self._indices(TransformCase.UPPER_ONLY))
        object.__setattr__(self, "_box_idx", self._indices(TransformCase.BOX))

    @classmethod
    def from_bounds(
        cls,
        lower: Sequence[float] | None,
        upper: Sequence[float] | None,
        n_pars: int,
    ) -> "BoundTransform":
        """Validate bound vectors and build the transform context.

        Parameters
        ----------
        lower : Sequence[float] or None
            Lower bounds, ``-inf`` for unbounded coordinates. If None, no
            coordinate has a lower bound.
        upper : Sequence[float] or None
            Upper bounds, ``inf`` for unbounded coordinates. If None, no
            coordinate has an upper bound.
        n_pars : int
            Number of model parameters.

        Raises
        ------
        ConfigError
            If the bounds have the wrong length, contain NaN, or do not leave
            a non-empty open interval for every coordinate.
        """
        _lower = np.full(n_pars, -np.inf) if lower is None else np.asarray(lower, dtype=float)
        _upper = np.full(n_pars, np.inf) if upper is None else np.asarray(upper, dtype=float)

        if _lower.shape != (n_pars,) or _upper.shape != (n_pars,):
            raise ConfigError(
                f"lower and upper must have length {n_pars}, got "
                f"{_lower.size} and {_upper.size}."
            )
        if np.isnan(_lower).any() or np.isnan(_upper).any():
            raise ConfigError("Bounds must not contain NaN.")
        if np.any(_lower == np.inf) or np.any(_upper == -np.inf):
            raise ConfigError("A lower bound of +inf or an upper bound of -inf is empty.")
        bad = np.flatnonzero(_lower >= _upper)
        if bad.size:
            raise ConfigError(f"lower must be strictly less than upper for parameters {bad.tolist()}.")

        transform = cls(_lower, _upper, transform_cases(_lower, _upper))
        logger.debug("Transform cases: %s", [str(case) for case in transform.cases])
        return transform

    def _indices(self, case: TransformCase) -> IntArray:
        return np.array([i for i, c in enumerate(self.cases) if c == case], dtype=int)

    @property
    def n_pars(self) -> int:
        """Number of coordinates handled by the transform."""
        return len(self.cases)

    @property
    def bounded(self) -> bool:
        """Whether any coordinate carries a finite bound."""
        return any(case != TransformCase.UNBOUNDED for case in self.cases)

    def forward(self, y: FloatArray) -> FloatArray:
        """Map unconstrained points ``y`` to the constrained space.

        Results stay strictly inside the bounds, also where the exact image
        would round onto a bound in floating point.
        """
        y = np.asarray(y, dtype=float)
        x = y.copy()
        lo, up, box = self._lower_idx, self._upper_idx, self._box_idx
        x[..., lo] = np.maximum(
            self.lower[lo] + np.exp(y[..., lo]), np.nextafter(self.lower[lo], np.inf)
        )
        x[..., up] = np.minimum(
            self.upper[up] - np.exp(y[..., up]), np.nextafter(self.upper[up], -np.inf)
        )
        x[..., box] = np.clip(
            self.lower[box] + (self.upper[box] - self.lower[box]) * expit(y[..., box]),
            np.nextafter(self.lower[box], np.inf),
            np.nextafter(self.upper[box], -np.inf),
        )
        return x

    def inverse(self, x: FloatArray) -> FloatArray:
        """Map constrained points ``x`` to the unconstrained space.

        Raises
        ------
        DomainError
            If any bounded coordinate is not strictly inside its interval.
        """
        x = np.asarray(x, dtype=float)
        lo, up, box = self._lower_idx, self._upper_idx, self._box_idx

        inside = np.ones(x.shape, dtype=bool)
        inside[..., lo] = x[..., lo] > self.lower[lo]
        inside[..., up] = x[..., up] < self.upper[up]
        inside[..., box] = (x[..., box] > self.lower[box]) & (x[..., box] < self.upper[box])
        if not inside.all():
            bad = sorted(set(np.nonzero(~inside)[-1].tolist()))
            raise DomainError(
                f"Parameters {bad} lie on or outside their bounds "
                f"(lower={self.lower[bad].tolist()}, upper={self.upper[bad].tolist()})."
            )

        y = x.copy()
        y[..., lo] = np.log(x[..., lo] - self.lower[lo])
        y[..., up] = np.log(self.upper[up] - x[..., up])
        # log-odds from both distances, finite right next to either bound
        y[..., box] = np.log(x[..., box] - self.lower[box]) - np.log(self.upper[box] - x[..., box])
        return y

    def scale(self, y: FloatArray) -> FloatArray:
        """Signed derivative dx/dy of :meth:`forward`, per coordinate."""
        y = np.asarray(y, dtype=float)
        s = np.ones_like(y)
        lo, up, box = self._lower_idx, self._upper_idx, self._box_idx
        s[..., lo] = np.exp(y[..., lo])
        s[..., up] = -np.exp(y[..., up])
        s[..., box] = (
            (self.upper[box] - self.lower[box]) * expit(y[..., box]) * expit(-y[..., box])
        )
        return s

    def log_abs_scale(self, y: FloatArray) -> FloatArray:
        """``log|dx/dy|`` per coordinate, computed without underflow in the tails."""
        y = np.asarray(y, dtype=float)
        ls = np.zeros_like(y)
        lo, up, box = self._lower_idx, self._upper_idx, self._box_idx
        ls[..., lo] = y[..., lo]
        ls[..., up] = y[..., up]
        ls[..., box] = (
            np.log(self.upper[box] - self.lower[box])
            + log_expit(y[..., box])
            + log_expit(-y[..., box])
        )
        return ls

    def scale_derivative(self, y: FloatArray) -> FloatArray:
        """Derivative of ``log|dx/dy|`` with respect to ``y``, per coordinate."""
        y = np.asarray(y, dtype=float)
        d = np.zeros_like(y)
        lo, up, box = self._lower_idx, self._upper_idx, self._box_idx
        d[..., lo] = 1.0
        d[..., up] = 1.0
        d[..., box] = 1.0 - 2.0 * expit(y[..., box])
        return d


class LogDensityTarget:
    """Picklable sampling target built from a model and an optional transform.

    Without a transform the target is the model's log-density, i.e. the
    negated objective. With a transform, the target is the log-density of the
    unconstrained space including the Jacobian term.

    Parameters
    ----------
    model : ModelHandle
        The model whose objective is a negative log-density.
    transform : BoundTransform or None, optional
        Transform context shared by all chains. Default is None.
    """

    def __init__(self, model: ModelHandle, transform: BoundTransform | None = None):
        self.model = model
        self.transform = transform

    def log_density(self, y: FloatArray) -> float:
        """Log-density at ``y`` in sampling space."""
        if self.transform is None:
            return -self.model.objective(y)
        x = self.transform.forward(y)
        return -self.model.objective(x) + float(np.sum(self.transform.log_abs_scale(y)))

    def gradient(self, y: FloatArray) -> FloatArray:
        """Gradient of :meth:`log_density` at ``y``."""
        if self.transform is None:
            return -np.asarray(self.model.gradient(y), dtype=float).reshape(-1)
        x = self.transform.forward(y)
        grad_x = np.asarray(self.model.gradient(x), dtype=float).reshape(-1)
        return -grad_x * self.transform.scale(y) + self.transform.scale_derivative(y)
