"""Functions for extracting samples and diagnostics from multi-chain results.

This module provides utilities for post-processing the output of
:func:`~pymultichain.sample.sample_model`, flattening chains into a single
ensemble of posterior draws.
"""

import numpy as np

from ..utils.types import FloatArray
from .aggregate import MultiChainResult


def extract_samples(
    result: MultiChainResult,
    inc_warmup: bool = False,
    inc_lp: bool = False,
) -> tuple[FloatArray, list[str]]:
    """Flatten the sample array into one ensemble of draws.

    Parameters
    ----------
    result : MultiChainResult
        Output of a multi-chain sampling run.
    inc_warmup : bool, optional
        Whether to keep the warmup iterations. Default is False.
    inc_lp : bool, optional
        Whether to keep the ``lp__`` column. Default is False.

    Returns
    -------
    samples : FloatArray
        Array of shape ``(n_chains * n_kept, n_columns)``, chains stacked in
        order.
    names : list of str
        Column names.

    Examples
    --------
    >>> draws, names = extract_samples(result)
    >>> print(dict(zip(names, draws.mean(axis=0))))
    """
    start = 0 if inc_warmup else result.warmup
    n_cols = result.samples.shape[2] if inc_lp else result.samples.shape[2] - 1
    kept = result.samples[start:, :, :n_cols]
    # chain-major: all of chain 1, then all of chain 2, ...
    draws = np.transpose(kept, (1, 0, 2)).reshape(-1, n_cols)
    return draws, list(result.par_names[:n_cols])


def extract_sampler_params(
    result: MultiChainResult,
    inc_warmup: bool = False,
) -> dict[str, FloatArray]:
    """Stack per-chain sampler diagnostics, adding ``chain`` and ``iteration`` columns.

    Iterations are counted in retained (thinned) rows, starting from 1.
    """
    start = 0 if inc_warmup else result.warmup
    stacked: dict[str, list[FloatArray]] = {"chain": [], "iteration": []}
    for chain, params in enumerate(result.sampler_params, start=1):
        n_rows = result.n_iterations - start
        stacked["chain"].append(np.full(n_rows, chain, dtype=int))
        stacked["iteration"].append(np.arange(start + 1, result.n_iterations + 1))
        for key, values in params.items():
            stacked.setdefault(key, []).append(values[start:])
    return {key: np.concatenate(values) for key, values in stacked.items()}
