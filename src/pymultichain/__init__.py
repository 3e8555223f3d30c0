"""pyMultiChain: multi-chain MCMC sampling of models with bounded parameters.

pyMultiChain runs several independent Markov chains over a model that
provides an objective (negative log-density) and its gradient, and combines
them into a single result. The package provides:

- Random-walk Metropolis, Hamiltonian Monte Carlo and No-U-Turn samplers
- Automatic transforms for parameters with lower, upper or box bounds
- Sequential or pool-based execution of chains
- Analysis tools for extracting draws and sampler diagnostics

Examples
--------
Basic usage with the No-U-Turn sampler:

    >>> from pymultichain import FunctionModel, sample_model
    >>> model = FunctionModel(fn=my_nll, gr=my_nll_gradient, par=[1.0, 0.5])
    >>> result = sample_model(
    ...     model, iter=2000, algorithm="NUTS", chains=4,
    ...     init=my_init_generator,
    ...     lower=[0.0, -np.inf],
    ... )
"""

from .analysis import MultiChainResult, extract_sampler_params, extract_samples
from .bounds import BoundTransform, TransformCase
from .sample import sample_model
from .samplers import Algorithm
from .utils import ConfigError, DomainError, FunctionModel, PyMultiChainError, SamplerFailure

__all__ = [
    "Algorithm",
    "BoundTransform",
    "ConfigError",
    "DomainError",
    "FunctionModel",
    "MultiChainResult",
    "PyMultiChainError",
    "SamplerFailure",
    "TransformCase",
    "extract_sampler_params",
    "extract_samples",
    "sample_model",
]
