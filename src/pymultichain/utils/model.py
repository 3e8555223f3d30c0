"""Adapter exposing plain callables as a model handle."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import numpy as np

from .exceptions import ConfigError
from .types import FloatArray


@dataclass
class FunctionModel:
    """Model handle built from an objective, its gradient and a parameter vector.

    Parameters
    ----------
    fn : Callable[[FloatArray], float]
        Negative log-density of the model (the quantity a fitter minimises).
    gr : Callable[[FloatArray], FloatArray]
        Gradient of ``fn``.
    par : Sequence[float]
        Current parameter vector, used as default initial values.
    names : Sequence[str] or None, optional
        Parameter names. Vector-valued parameters are given as repeated names.
        Default is ``"x"`` for every parameter.
    name : str, optional
        Label identifying the model. Default is ``"model"``.

    Examples
    --------
    >>> model = FunctionModel(
    ...     fn=lambda x: 0.5 * np.sum(x**2),
    ...     gr=lambda x: x,
    ...     par=[0.1, 0.2],
    ...     names=["mu", "mu"],
    ... )
    """

    fn: Callable[[FloatArray], float]
    gr: Callable[[FloatArray], FloatArray]
    par: Sequence[float]
    names: Sequence[str] | None = None
    name: str = "model"
    silent: bool = field(default=False, init=False)

    def __post_init__(self):
        """Post-initialization checks."""
        self.par = np.atleast_1d(np.asarray(self.par, dtype=float))
        if self.par.ndim != 1:
            raise ConfigError("par must be a one-dimensional parameter vector.")
        if self.names is None:
            self.names = ["x"] * len(self.par)
        self.names = list(self.names)
        if len(self.names) != len(self.par):
            raise ConfigError(
                f"Got {len(self.names)} parameter names for {len(self.par)} parameters."
            )

    def objective(self, x: FloatArray) -> float:
        """Negative log-density at ``x``, as returned by ``fn``."""
        return float(self.fn(x))

    def gradient(self, x: FloatArray) -> FloatArray:
        """Gradient of the objective at ``x``, flattened to a 1D float array."""
        return np.asarray(self.gr(x), dtype=float).reshape(-1)

    def current_parameters(self) -> FloatArray:
        """Copy of the parameter vector, so callers cannot modify the model."""
        return self.par.copy()

    def parameter_names(self) -> list[str]:
        """Parameter names, with vector-valued parameters repeated."""
        return list(self.names)

    def quiet(self) -> None:
        """Mark the model as silenced.

        Plain callables produce no diagnostic output, so there is nothing to
        suppress; the flag is recorded in ``silent`` for the caller to inspect.
        """
        self.silent = True

    def label(self) -> str:
        """Label identifying the model."""
        return self.name
