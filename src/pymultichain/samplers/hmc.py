"""Static Hamiltonian Monte Carlo sampling (Neal 2011)."""

import logging
import time
from typing import Any

import numpy as np
from tqdm import tqdm

from ..utils.types import FloatArray, GradientFunction, LogDensityFunction
from ._utils import (
    ChainRecorder,
    ChainResult,
    DualAveraging,
    RotatedSpace,
    acceptance_probability,
    check_initial_log_density,
    find_reasonable_step_size,
    joint_log_density,
    leapfrog,
    resolve_warmup,
)

logger = logging.getLogger(__name__)

HMC_FIELDS = ("accept_stat__", "stepsize__", "int_time__", "energy__")


def run_mcmc_hmc(
    iter: int,
    fn: LogDensityFunction,
    gr: GradientFunction,
    init: FloatArray,
    chain: int = 1,
    thin: int = 1,
    covar: FloatArray | None = None,
    seed: Any = None,
    progress: bool = False,
    warmup: int | None = None,
    L: int = 10,
    eps: float | None = None,
    delta: float = 0.8,
    jitter: float = 0.1,
) -> ChainResult:
    """Run a single Hamiltonian Monte Carlo chain with a fixed number of steps.

    Each iteration draws a standard normal momentum, integrates ``L``
    leapfrog steps and applies a Metropolis correction. If ``eps`` is not
    given, a starting step size is found heuristically and tuned by dual
    averaging towards acceptance ``delta`` during warmup, then frozen.

    Parameters
    ----------
    iter : int
        Number of iterations, including warmup.
    fn : LogDensityFunction
        Log-density of the sampling space.
    gr : GradientFunction
        Gradient of ``fn``.
    init : FloatArray
        Initial point in sampling space.
    chain : int, optional
        Chain number, used for progress bars and logs. Default is 1.
    thin : int, optional
        Keep every ``thin``-th iteration. Default is 1.
    covar : FloatArray or None, optional
        Covariance matrix used as the inverse metric. Default is None.
    seed : int, SeedSequence or None, optional
        Seed for the chain's random number generator.
    progress : bool, optional
        Whether to show a progress bar. Default is False.
    warmup : int or None, optional
        Number of warmup iterations. Default is ``iter // 2``.
    L : int, optional
        Number of leapfrog steps per iteration. Default is 10.
    eps : float or None, optional
        Step size. If None it is adapted during warmup.
    delta : float, optional
        Target acceptance probability for step size adaptation. Default is 0.8.
    jitter : float, optional
        Each iteration uses a step size drawn uniformly within this relative
        distance of the current step size, which avoids periodic trajectories.
        Default is 0.1.

    Returns
    -------
    ChainResult
        Retained points with their log-density and per-iteration diagnostics
        ``accept_stat__``, ``stepsize__``, ``int_time__`` and ``energy__``.
    """
    rng = np.random.default_rng(seed)
    warmup = resolve_warmup(warmup, iter)
    space = RotatedSpace(fn, gr, covar)

    z = space.to_sampling(init)
    lp = space.log_density(z)
    check_initial_log_density(lp)
    grad = space.gradient(z)

    adapt = eps is None
    if adapt:
        eps = find_reasonable_step_size(space, z, rng)
        logger.debug("Chain %d: initial step size %.4g", chain, eps)
    dual_averaging = DualAveraging.from_step_size(eps, target=delta)

    recorder = ChainRecorder(iter, thin, z.size, HMC_FIELDS)
    time_warmup = 0.0
    start = time.perf_counter()
    for m in tqdm(range(iter), disable=not progress, desc=f"Chain {chain} (HMC)"):
        r0 = rng.standard_normal(z.size)
        joint0 = joint_log_density(lp, r0)

        used_eps = eps * rng.uniform(1.0 - jitter, 1.0 + jitter)
        z_new, r_new, grad_new, lp_new = z, r0, grad, lp
        for _ in range(L):
            z_new, r_new, grad_new, lp_new = leapfrog(space, z_new, r_new, grad_new, used_eps)
            if not np.isfinite(lp_new):
                break

        accept_stat = acceptance_probability(joint_log_density(lp_new, r_new) - joint0)
        if rng.uniform() < accept_stat:
            z, lp, grad, r = z_new, lp_new, grad_new, r_new
        else:
            r = r0

        if adapt and m < warmup:
            eps = dual_averaging.update(accept_stat)
            if m + 1 == warmup:
                eps = dual_averaging.final()
        if m + 1 == warmup:
            time_warmup = time.perf_counter() - start

        recorder.record(
            m,
            space.from_sampling(z),
            lp,
            accept_stat__=accept_stat,
            stepsize__=used_eps,
            int_time__=used_eps * L,
            energy__=-joint_log_density(lp, r),
        )
    time_total = time.perf_counter() - start

    logger.debug("Chain %d: final HMC step size %.4g", chain, eps)
    return ChainResult(
        par=recorder.par,
        sampler_params=recorder.sampler_params,
        warmup=warmup // thin,
        time_warmup=time_warmup,
        time_total=time_total,
    )
