"""Random-walk Metropolis sampling."""

import logging
import time
from typing import Any

import numpy as np
from tqdm import tqdm

from ..utils.types import FloatArray, GradientFunction, LogDensityFunction
from ._utils import (
    ChainRecorder,
    ChainResult,
    RotatedSpace,
    acceptance_probability,
    check_initial_log_density,
    resolve_warmup,
)

logger = logging.getLogger(__name__)


def run_mcmc_rwm(
    iter: int,
    fn: LogDensityFunction,
    gr: GradientFunction | None,
    init: FloatArray,
    chain: int = 1,
    thin: int = 1,
    covar: FloatArray | None = None,
    seed: Any = None,
    progress: bool = False,
    warmup: int | None = None,
    alpha: float = 1.0,
) -> ChainResult:
    """Run a single random-walk Metropolis chain.

    Proposals are ``z + alpha * N(0, I)`` in the space rotated by the
    Cholesky factor of ``covar``, so with a good covariance estimate the
    proposal shape matches the posterior.

    Parameters
    ----------
    iter : int
        Number of iterations, including warmup.
    fn : LogDensityFunction
        Log-density of the sampling space.
    gr : GradientFunction or None
        Ignored; accepted so that all samplers share one call signature.
    init : FloatArray
        Initial point in sampling space.
    chain : int, optional
        Chain number, used for progress bars and logs. Default is 1.
    thin : int, optional
        Keep every ``thin``-th iteration. Default is 1.
    covar : FloatArray or None, optional
        Covariance matrix used to rotate the proposal. Default is None.
    seed : int, SeedSequence or None, optional
        Seed for the chain's random number generator.
    progress : bool, optional
        Whether to show a progress bar. Default is False.
    warmup : int or None, optional
        Number of warmup iterations. Default is ``iter // 2``.
    alpha : float, optional
        Proposal scale. Default is 1.

    Returns
    -------
    ChainResult
        Retained points with their log-density and per-iteration
        ``accept_stat__``.
    """
    rng = np.random.default_rng(seed)
    warmup = resolve_warmup(warmup, iter)
    space = RotatedSpace(fn, covar=covar)

    z = space.to_sampling(init)
    lp = space.log_density(z)
    check_initial_log_density(lp)

    recorder = ChainRecorder(iter, thin, z.size, ("accept_stat__",))
    n_accepted = 0
    time_warmup = 0.0
    start = time.perf_counter()
    for m in tqdm(range(iter), disable=not progress, desc=f"Chain {chain} (RWM)"):
        z_prop = z + alpha * rng.standard_normal(z.size)
        lp_prop = space.log_density(z_prop)
        accept_stat = acceptance_probability(lp_prop - lp)
        if rng.uniform() < accept_stat:
            z, lp = z_prop, lp_prop
            n_accepted += 1
        if m + 1 == warmup:
            time_warmup = time.perf_counter() - start
        recorder.record(m, space.from_sampling(z), lp, accept_stat__=accept_stat)
    time_total = time.perf_counter() - start

    logger.debug("Chain %d: RWM acceptance rate %.3f", chain, n_accepted / iter)
    return ChainResult(
        par=recorder.par,
        sampler_params=recorder.sampler_params,
        warmup=warmup // thin,
        time_warmup=time_warmup,
        time_total=time_total,
    )
