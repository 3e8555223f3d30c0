"""Custom types for pymultichain."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Annotated, Any, Protocol, TypeAlias

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from ..samplers._utils import ChainResult

# These shape annotations are for documentation purposes only.
# Current numpy type annotations only specify the dtype, not the shape.
IntArray: TypeAlias = npt.NDArray[np.integer]
FloatArray: TypeAlias = npt.NDArray[np.floating]
SampleMatrix: TypeAlias = Annotated[FloatArray, "(n_retained, n_pars + 1)"]
SampleArray: TypeAlias = Annotated[FloatArray, "(n_retained, n_chains, n_pars + 1)"]
SamplerParams: TypeAlias = dict[str, FloatArray]

LogDensityFunction: TypeAlias = Callable[[FloatArray], float]
GradientFunction: TypeAlias = Callable[[FloatArray], FloatArray]


class ModelHandle(Protocol):
    """Protocol for the statistical model being sampled.

    The model is owned by the caller. It is only read from inside the
    wrapped log-density and gradient functions handed to the samplers.
    """

    def objective(self, x: FloatArray) -> float:
        """Negative log-density of the model at the constrained point x."""
        ...

    def gradient(self, x: FloatArray) -> FloatArray:
        """Gradient of the objective at x, same length as x."""
        ...

    def current_parameters(self) -> FloatArray:
        """Current parameter vector, used as the default initial value."""
        ...

    def parameter_names(self) -> list[str]:
        """Names of the parameters, one per entry of the parameter vector.

        Vector-valued parameters appear as repeated names.
        """
        ...

    def quiet(self) -> None:
        """Suppress any diagnostic output the model would otherwise produce."""
        ...

    def label(self) -> str:
        """Identifying label of the model."""
        ...


class ChainSampler(Protocol):
    """Protocol for a single-chain MCMC sampler.

    ``fn`` returns the log-density of the sampling space, so samplers move
    towards larger values of ``fn``. ``gr`` is ignored by gradient-free
    samplers.
    """

    def __call__(
        self,
        iter: int,
        fn: LogDensityFunction,
        gr: GradientFunction | None,
        init: FloatArray,
        chain: int = 1,
        thin: int = 1,
        covar: FloatArray | None = None,
        seed: Any = None,
        progress: bool = False,
        **kwargs: Any,
    ) -> "ChainResult":
        """Run one chain and return its raw output in sampling space."""
        ...
