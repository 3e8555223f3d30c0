"""Common functions and containers for samplers."""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
from scipy.linalg import cholesky, solve_triangular

from ..utils.types import (
    FloatArray,
    GradientFunction,
    LogDensityFunction,
    SampleMatrix,
    SamplerParams,
)


@dataclass
class ChainResult:
    """Dataclass to hold the raw output of a single chain.

    Samples are in sampling (unconstrained) space. The last column of ``par``
    holds the log-density of each retained point.
    """

    par: SampleMatrix
    sampler_params: SamplerParams
    warmup: int  # in retained rows
    time_warmup: float
    time_total: float
    max_treedepth_hits: int | None = None

    def __repr__(self):
        """String representation of the chain result."""
        return f"ChainResult(n_retained={self.n_retained}, n_pars={self.n_pars}, warmup={self.warmup})"

    def __post_init__(self):
        """Post-initialization checks."""
        self.par = np.asarray(self.par, dtype=float)
        if self.par.ndim != 2 or self.par.shape[1] < 2:
            raise ValueError("par must be a 2D array with at least one parameter column and lp__.")

    @property
    def n_retained(self) -> int:
        """Number of retained (thinned) iterations."""
        return self.par.shape[0]

    @property
    def n_pars(self) -> int:
        """Number of parameters, excluding the log-density column."""
        return self.par.shape[1] - 1


@dataclass
class ChainRecorder:
    """Store every ``thin``-th iteration of a chain and its diagnostics."""

    n_iter: int
    thin: int
    n_pars: int
    fields: Sequence[str]
    par: FloatArray = field(init=False)
    sampler_params: SamplerParams = field(init=False)

    def __post_init__(self):
        """Allocate storage for the retained iterations."""
        n_retained = self.n_iter // self.thin
        self.par = np.full((n_retained, self.n_pars + 1), np.nan)
        self.sampler_params = {name: np.full(n_retained, np.nan) for name in self.fields}

    def record(self, iteration: int, y: FloatArray, lp: float, **diagnostics: float) -> None:
        """Record 0-based ``iteration`` if it is retained after thinning."""
        if (iteration + 1) % self.thin:
            return
        row = (iteration + 1) // self.thin - 1
        self.par[row, :-1] = y
        self.par[row, -1] = lp
        for name, value in diagnostics.items():
            self.sampler_params[name][row] = value


class RotatedSpace:
    """Sampling space decorrelated by the Cholesky factor of a covariance matrix.

    The sampler works in ``z`` where ``y = L z`` and ``L`` is the lower
    Cholesky factor of ``covar``. Without a covariance matrix ``z = y``.
    """

    def __init__(
        self,
        fn: LogDensityFunction,
        gr: GradientFunction | None = None,
        covar: FloatArray | None = None,
    ):
        self.fn = fn
        self.gr = gr
        self.chol = None if covar is None else cholesky(np.asarray(covar, dtype=float), lower=True)

    def to_sampling(self, y: FloatArray) -> FloatArray:
        y = np.asarray(y, dtype=float)
        if self.chol is None:
            return y.copy()
        return solve_triangular(self.chol, y, lower=True)

    def from_sampling(self, z: FloatArray) -> FloatArray:
        if self.chol is None:
            return np.array(z, dtype=float)
        return self.chol @ z

    def log_density(self, z: FloatArray) -> float:
        return float(self.fn(self.from_sampling(z)))

    def gradient(self, z: FloatArray) -> FloatArray:
        if self.gr is None:
            raise ValueError("This sampler requires a gradient function.")
        g = np.asarray(self.gr(self.from_sampling(z)), dtype=float).reshape(-1)
        if self.chol is None:
            return g
        return self.chol.T @ g


@dataclass
class DualAveraging:
    """Dual averaging step size adaptation (Hoffman and Gelman 2014, section 3.2)."""

    mu: float
    target: float = 0.8
    gamma: float = 0.05
    t0: float = 10.0
    kappa: float = 0.75
    log_eps: float = 0.0
    log_eps_bar: float = 0.0
    h_bar: float = 0.0
    t: int = 0

    @classmethod
    def from_step_size(cls, eps: float, target: float = 0.8) -> "DualAveraging":
        return cls(mu=math.log(10 * eps), target=target, log_eps=math.log(eps))

    def update(self, accept_stat: float) -> float:
        self.t += 1
        eta = 1.0 / (self.t + self.t0)
        self.h_bar = (1.0 - eta) * self.h_bar + eta * (self.target - accept_stat)
        self.log_eps = self.mu - (math.sqrt(self.t) / self.gamma) * self.h_bar
        w = self.t ** (-self.kappa)
        self.log_eps_bar = w * self.log_eps + (1.0 - w) * self.log_eps_bar
        return math.exp(self.log_eps)

    def final(self) -> float:
        return math.exp(self.log_eps_bar)


def leapfrog(
    space: RotatedSpace,
    z: FloatArray,
    r: FloatArray,
    grad: FloatArray,
    eps: float,
) -> tuple[FloatArray, FloatArray, FloatArray, float]:
    """One leapfrog step with unit mass. Returns ``(z, r, grad, lp)`` at the new point."""
    r_half = r + 0.5 * eps * grad
    z_new = z + eps * r_half
    lp_new = space.log_density(z_new)
    grad_new = space.gradient(z_new)
    r_new = r_half + 0.5 * eps * grad_new
    return z_new, r_new, grad_new, lp_new


def joint_log_density(lp: float, r: FloatArray) -> float:
    """Log-density of the position and momentum, i.e. the negative Hamiltonian."""
    return lp - 0.5 * float(r @ r)


def acceptance_probability(log_ratio: float) -> float:
    """``min(1, exp(log_ratio))``, zero for NaN."""
    if np.isnan(log_ratio):
        return 0.0
    return math.exp(min(0.0, log_ratio))


def find_reasonable_step_size(
    space: RotatedSpace,
    z: FloatArray,
    rng: np.random.Generator,
    eps: float = 1.0,
    min_eps: float = 1e-8,
    max_eps: float = 1e7,
) -> float:
    """Heuristic for an initial step size (Hoffman and Gelman 2014, algorithm 4)."""
    lp = space.log_density(z)
    grad = space.gradient(z)
    r = rng.standard_normal(z.shape)
    joint0 = joint_log_density(lp, r)

    _, r1, _, lp1 = leapfrog(space, z, r, grad, eps)
    log_ratio = joint_log_density(lp1, r1) - joint0
    direction = 1.0 if acceptance_probability(log_ratio) > 0.5 else -1.0

    while min_eps < eps < max_eps:
        _, r1, _, lp1 = leapfrog(space, z, r, grad, eps)
        log_ratio = joint_log_density(lp1, r1) - joint0
        if np.isnan(log_ratio):
            if direction > 0:
                eps *= 0.5
            break
        if direction * log_ratio <= -direction * math.log(2.0):
            break
        eps *= 2.0**direction
    return float(np.clip(eps, min_eps, max_eps))


def resolve_warmup(warmup: int | None, n_iter: int) -> int:
    """Default warmup is half the iterations."""
    if warmup is None:
        return n_iter // 2
    if not 0 <= warmup <= n_iter:
        raise ValueError(f"warmup must be between 0 and iter ({n_iter}), got {warmup}.")
    return int(warmup)


def check_initial_log_density(lp: float) -> None:
    if not np.isfinite(lp):
        raise ValueError(
            "Log-density is not finite at the initial values. Check the model and the initial state."
        )
