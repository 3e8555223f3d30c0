"""Checks on the configuration of a sampling run.

Everything here runs before any sampler is invoked, so a malformed call
fails fast with a :class:`~pymultichain.utils.exceptions.ConfigError`.
"""

import logging
import math
import numbers
import warnings
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np

from .samplers import Algorithm
from .utils.exceptions import ConfigError
from .utils.types import FloatArray, ModelHandle

logger = logging.getLogger(__name__)

MIN_ITERATIONS = 10


def resolve_initial_values(
    init: Callable[[], Any] | Sequence[Sequence[float]] | None,
    model: ModelHandle,
    chains: int,
) -> list[FloatArray]:
    """Produce one initial parameter vector per chain.

    Parameters
    ----------
    init : callable, sequence of vectors or None
        If None, the model's current parameters are used for every chain.
        If callable, it is invoked once per chain and must return a vector.
        Otherwise it must hold exactly one vector per chain.
    model : ModelHandle
        The model being sampled.
    chains : int
        Number of chains.

    Returns
    -------
    list of FloatArray
        Initial values in constrained space, one per chain.

    Raises
    ------
    ConfigError
        If the number of vectors differs from ``chains`` or any vector has
        the wrong length.
    """
    n_pars = len(model.current_parameters())

    if init is None:
        if chains > 1:
            warnings.warn(
                "Using the same initial values for each chain; "
                "dispersed initial values are strongly recommended."
            )
        inits = [model.current_parameters() for _ in range(chains)]
    elif callable(init):
        logger.debug("Drawing initial values for %d chains from %r", chains, init)
        inits = [init() for _ in range(chains)]
    else:
        inits = list(init)
        if len(inits) != chains:
            raise ConfigError(
                f"Length of init ({len(inits)}) does not equal number of chains ({chains})."
            )

    inits = [np.atleast_1d(np.asarray(x, dtype=float)).reshape(-1) for x in inits]
    for i, x in enumerate(inits):
        if x.size != n_pars:
            raise ConfigError(
                f"Initial parameter vector for chain {i + 1} has length {x.size}, "
                f"expected {n_pars}."
            )
    return inits


def validate_algorithm(algorithm: Algorithm | str) -> Algorithm:
    """Resolve an algorithm name to an :class:`Algorithm` member.

    Names are matched case-insensitively.
    """
    if isinstance(algorithm, Algorithm):
        return algorithm
    if isinstance(algorithm, str):
        try:
            return Algorithm(algorithm.upper())
        except ValueError:
            pass
    raise ConfigError(
        f"Unrecognised algorithm {algorithm!r}; choose one of {[a.value for a in Algorithm]}."
    )


def validate_run_settings(chains: int, iter: int, thin: float) -> tuple[int, int]:
    """Check the chain count, iteration count and thinning rate.

    Returns
    -------
    tuple of int
        The thinning rate floored to an integer and the iteration count
        truncated to an integer.

    Raises
    ------
    ConfigError
        If ``thin`` floors below 1, ``chains`` is below 1, or ``iter`` is not
        a finite number whose integer part is greater than 10.
    """
    if not isinstance(thin, numbers.Real) or isinstance(thin, bool) or not math.isfinite(thin):
        raise ConfigError(f"thin must be a finite number, got {thin!r}.")
    thin = math.floor(thin)
    if thin < 1:
        raise ConfigError(f"thin must be >= 1 after flooring, got {thin}.")

    if not isinstance(chains, numbers.Integral) or isinstance(chains, bool) or chains < 1:
        raise ConfigError(f"chains must be an integer >= 1, got {chains!r}.")

    if not isinstance(iter, numbers.Real) or isinstance(iter, bool) or not math.isfinite(iter):
        raise ConfigError(f"iter must be a finite number, got {iter!r}.")
    n_iter = int(iter)
    if not n_iter > MIN_ITERATIONS:
        raise ConfigError(f"iter must be > {MIN_ITERATIONS} after truncation, got {iter}.")

    return int(thin), n_iter


def validate_warmup(warmup: Any | None, n_iter: int) -> None:
    """Check an explicit warmup length against the number of iterations.

    None leaves the choice to the sampler.
    """
    if warmup is None:
        return
    if not isinstance(warmup, numbers.Integral) or isinstance(warmup, bool):
        raise ConfigError(f"warmup must be an integer, got {warmup!r}.")
    if not 0 <= warmup <= n_iter:
        raise ConfigError(f"warmup must be between 0 and iter ({n_iter}), got {warmup}.")


def validate_covariance(covar: Any | None, n_pars: int) -> FloatArray | None:
    """Check that an optional covariance matrix is a positive definite ``n_pars`` square."""
    if covar is None:
        return None
    _covar = np.asarray(covar, dtype=float)
    if _covar.shape != (n_pars, n_pars):
        raise ConfigError(f"covar must have shape ({n_pars}, {n_pars}), got {_covar.shape}.")
    if not np.allclose(_covar, _covar.T):
        raise ConfigError("covar must be symmetric.")
    try:
        np.linalg.cholesky(_covar)
    except np.linalg.LinAlgError as e:
        raise ConfigError("covar must be positive definite.") from e
    return _covar
