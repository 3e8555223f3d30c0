"""Sampling algorithms for pyMultiChain.

This module provides the single-chain MCMC samplers that the multi-chain
orchestration dispatches to:

- Random-walk Metropolis: gradient-free, proposal scaled by an optional covariance
- Hamiltonian Monte Carlo: fixed number of leapfrog steps per iteration
- No-U-Turn sampler: Hamiltonian Monte Carlo with automatic trajectory length

All samplers share one call signature (see
:class:`~pymultichain.utils.types.ChainSampler`) and return a
:class:`ChainResult` in sampling space.
"""

from enum import StrEnum

from ..utils.types import ChainSampler
from ._utils import ChainResult
from .hmc import run_mcmc_hmc
from .nuts import run_mcmc_nuts
from .rwm import run_mcmc_rwm


class Algorithm(StrEnum):
    """Enum for the available MCMC algorithms."""

    NUTS = "NUTS"
    RWM = "RWM"
    HMC = "HMC"

    @property
    def uses_gradient(self) -> bool:
        """Whether the algorithm needs the gradient of the log-density."""
        return self is not Algorithm.RWM


SAMPLERS: dict[Algorithm, ChainSampler] = {
    Algorithm.NUTS: run_mcmc_nuts,
    Algorithm.RWM: run_mcmc_rwm,
    Algorithm.HMC: run_mcmc_hmc,
}


def get_sampler(algorithm: Algorithm) -> ChainSampler:
    """Look up the sampler implementing ``algorithm``."""
    return SAMPLERS[algorithm]


__all__ = [
    "Algorithm",
    "ChainResult",
    "SAMPLERS",
    "get_sampler",
    "run_mcmc_hmc",
    "run_mcmc_nuts",
    "run_mcmc_rwm",
]
