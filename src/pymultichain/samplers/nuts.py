"""No-U-Turn sampling (Hoffman and Gelman 2014, algorithms 3 and 6)."""

import logging
import math
import time
import warnings
from typing import Any, NamedTuple

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

NUTS_FIELDS = (
    "accept_stat__",
    "stepsize__",
    "treedepth__",
    "n_leapfrog__",
    "divergent__",
    "energy__",
)
DELTA_MAX = 1000.0


class _Tree(NamedTuple):
    """Edges, proposal and bookkeeping of a (sub)tree built by doubling."""

    z_minus: FloatArray
    r_minus: FloatArray
    grad_minus: FloatArray
    z_plus: FloatArray
    r_plus: FloatArray
    grad_plus: FloatArray
    z_prop: FloatArray
    r_prop: FloatArray
    lp_prop: float
    grad_prop: FloatArray
    n_valid: int
    s_continue: bool
    alpha_sum: float
    n_alpha: int
    divergent: bool


def _is_uturn(z_minus, z_plus, r_minus, r_plus) -> bool:
    dz = z_plus - z_minus
    return bool(dz @ r_minus < 0.0) or bool(dz @ r_plus < 0.0)


def _build_tree(
    space: RotatedSpace,
    z: FloatArray,
    r: FloatArray,
    grad: FloatArray,
    log_u: float,
    v: int,
    depth: int,
    eps: float,
    joint0: float,
    rng: np.random.Generator,
) -> _Tree:
    if depth == 0:
        z1, r1, g1, lp1 = leapfrog(space, z, r, grad, v * eps)
        joint = joint_log_density(lp1, r1)
        if not np.isfinite(joint):
            return _Tree(z1, r1, g1, z1, r1, g1, z1, r1, lp1, g1, 0, False, 0.0, 1, True)
        divergent = joint < log_u - DELTA_MAX
        return _Tree(
            z1, r1, g1, z1, r1, g1, z1, r1, lp1, g1,
            n_valid=int(log_u <= joint),
            s_continue=not divergent,
            alpha_sum=acceptance_probability(joint - joint0),
            n_alpha=1,
            divergent=divergent,
        )

    tree = _build_tree(space, z, r, grad, log_u, v, depth - 1, eps, joint0, rng)
    if not tree.s_continue:
        return tree

    if v == -1:
        other = _build_tree(
            space, tree.z_minus, tree.r_minus, tree.grad_minus, log_u, v, depth - 1, eps, joint0, rng
        )
        z_minus, r_minus, grad_minus = other.z_minus, other.r_minus, other.grad_minus
        z_plus, r_plus, grad_plus = tree.z_plus, tree.r_plus, tree.grad_plus
    else:
        other = _build_tree(
            space, tree.z_plus, tree.r_plus, tree.grad_plus, log_u, v, depth - 1, eps, joint0, rng
        )
        z_minus, r_minus, grad_minus = tree.z_minus, tree.r_minus, tree.grad_minus
        z_plus, r_plus, grad_plus = other.z_plus, other.r_plus, other.grad_plus

    z_prop, r_prop, lp_prop, grad_prop = tree.z_prop, tree.r_prop, tree.lp_prop, tree.grad_prop
    n_valid = tree.n_valid + other.n_valid
    if other.n_valid > 0 and rng.uniform() < other.n_valid / n_valid:
        z_prop, r_prop, lp_prop, grad_prop = other.z_prop, other.r_prop, other.lp_prop, other.grad_prop

    return _Tree(
        z_minus, r_minus, grad_minus, z_plus, r_plus, grad_plus,
        z_prop, r_prop, lp_prop, grad_prop,
        n_valid=n_valid,
        s_continue=other.s_continue and not _is_uturn(z_minus, z_plus, r_minus, r_plus),
        alpha_sum=tree.alpha_sum + other.alpha_sum,
        n_alpha=tree.n_alpha + other.n_alpha,
        divergent=tree.divergent or other.divergent,
    )


def run_mcmc_nuts(
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
    max_treedepth: int = 10,
    eps: float | None = None,
    delta: float = 0.8,
) -> ChainResult:
    """Run a single No-U-Turn sampler chain.

    The trajectory length is chosen automatically by doubling until the
    trajectory turns back on itself or ``max_treedepth`` doublings are
    reached. The step size is tuned by dual averaging during warmup unless
    ``eps`` is given.

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
    max_treedepth : int, optional
        Maximum number of trajectory doublings. Default is 10.
    eps : float or None, optional
        Step size. If None it is adapted during warmup.
    delta : float, optional
        Target acceptance statistic for step size adaptation. Default is 0.8.

    Returns
    -------
    ChainResult
        Retained points, their log-density, per-iteration diagnostics and the
        number of post-warmup iterations that hit ``max_treedepth``.
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

    recorder = ChainRecorder(iter, thin, z.size, NUTS_FIELDS)
    treedepth_hits = 0
    n_divergent = 0
    time_warmup = 0.0
    start = time.perf_counter()
    for m in tqdm(range(iter), disable=not progress, desc=f"Chain {chain} (NUTS)"):
        r0 = rng.standard_normal(z.size)
        joint0 = joint_log_density(lp, r0)
        log_u = joint0 + math.log1p(-rng.uniform())

        z_minus, r_minus, grad_minus = z, r0, grad
        z_plus, r_plus, grad_plus = z, r0, grad
        r = r0
        n_valid = 1
        s_continue = True
        depth = 0
        alpha_sum = 0.0
        n_alpha = 0
        divergent = False
        while s_continue and depth < max_treedepth:
            v = 1 if rng.uniform() < 0.5 else -1
            if v == -1:
                tree = _build_tree(space, z_minus, r_minus, grad_minus, log_u, v, depth, eps, joint0, rng)
                z_minus, r_minus, grad_minus = tree.z_minus, tree.r_minus, tree.grad_minus
            else:
                tree = _build_tree(space, z_plus, r_plus, grad_plus, log_u, v, depth, eps, joint0, rng)
                z_plus, r_plus, grad_plus = tree.z_plus, tree.r_plus, tree.grad_plus

            if tree.s_continue and rng.uniform() < tree.n_valid / n_valid:
                z, r, lp, grad = tree.z_prop, tree.r_prop, tree.lp_prop, tree.grad_prop
            n_valid += tree.n_valid
            s_continue = tree.s_continue and not _is_uturn(z_minus, z_plus, r_minus, r_plus)
            alpha_sum += tree.alpha_sum
            n_alpha += tree.n_alpha
            divergent = divergent or tree.divergent
            depth += 1

        accept_stat = alpha_sum / max(1, n_alpha)
        used_eps = eps
        if adapt and m < warmup:
            eps = dual_averaging.update(accept_stat)
            if m + 1 == warmup:
                eps = dual_averaging.final()
        if m + 1 == warmup:
            time_warmup = time.perf_counter() - start
        if m >= warmup:
            treedepth_hits += int(depth >= max_treedepth)
            n_divergent += int(divergent)

        recorder.record(
            m,
            space.from_sampling(z),
            lp,
            accept_stat__=accept_stat,
            stepsize__=used_eps,
            treedepth__=depth,
            n_leapfrog__=n_alpha,
            divergent__=float(divergent),
            energy__=-joint_log_density(lp, r),
        )
    time_total = time.perf_counter() - start

    if treedepth_hits:
        warnings.warn(
            f"Chain {chain}: {treedepth_hits} iterations after warmup hit the "
            f"maximum tree depth of {max_treedepth}; consider increasing max_treedepth."
        )
    if n_divergent:
        warnings.warn(f"Chain {chain}: {n_divergent} divergent transitions after warmup.")
    logger.debug("Chain %d: final NUTS step size %.4g", chain, eps)

    return ChainResult(
        par=recorder.par,
        sampler_params=recorder.sampler_params,
        warmup=warmup // thin,
        time_warmup=time_warmup,
        time_total=time_total,
        max_treedepth_hits=treedepth_hits,
    )
