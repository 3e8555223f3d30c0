"""Analysis tools for multi-chain MCMC results.

This module provides utilities for assembling and post-processing the output
of the samplers, including:

- Combining per-chain output into one labelled sample array
- Disambiguating the names of vector-valued parameters
- Extracting post-warmup draws and sampler diagnostics
"""

from .aggregate import LP_LABEL, MultiChainResult, aggregate_chains, make_unique_names
from .samples import extract_sampler_params, extract_samples

__all__ = [
    "LP_LABEL",
    "MultiChainResult",
    "aggregate_chains",
    "extract_sampler_params",
    "extract_samples",
    "make_unique_names",
]
