"""Assembling per-chain sampler output into a single result."""

import logging
import warnings
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from ..bounds import BoundTransform
from ..samplers import Algorithm, ChainResult
from ..utils.exceptions import SamplerFailure
from ..utils.types import FloatArray, SampleArray, SamplerParams

logger = logging.getLogger(__name__)

LP_LABEL = "lp__"


@dataclass
class MultiChainResult:
    """Dataclass to hold the combined output of a multi-chain sampling run.

    ``samples`` is indexed as ``[iteration, chain, parameter]`` and is in the
    constrained model space. The last entry of the parameter axis is the
    log-density trace, labelled ``lp__`` in ``par_names``.
    """

    samples: SampleArray
    par_names: list[str]
    sampler_params: list[SamplerParams]
    time_warmup: FloatArray
    time_total: FloatArray
    algorithm: Algorithm
    warmup: int
    model: str
    max_treedepth_hits: int | None = None

    def __repr__(self):
        """String representation of the multi-chain result."""
        return (
            f"MultiChainResult(algorithm={self.algorithm}, n_chains={self.n_chains}, "
            f"n_iterations={self.n_iterations}, n_pars={self.n_pars}, model={self.model!r})"
        )

    @property
    def n_iterations(self) -> int:
        """Number of retained iterations per chain, including warmup."""
        return self.samples.shape[0]

    @property
    def n_chains(self) -> int:
        """Number of chains."""
        return self.samples.shape[1]

    @property
    def n_pars(self) -> int:
        """Number of model parameters, excluding ``lp__``."""
        return self.samples.shape[2] - 1


def make_unique_names(names: Sequence[str]) -> list[str]:
    """Append a 1-based position to every name that occurs more than once.

    A position whose label is already another parameter's name is skipped,
    so the returned names are always distinct.

    Examples
    --------
    >>> make_unique_names(["a", "b", "a", "c", "a"])
    ['a[1]', 'b', 'a[2]', 'c', 'a[3]']
    >>> make_unique_names(["a", "a", "a[1]"])
    ['a[2]', 'a[3]', 'a[1]']
    """
    counts = Counter(names)
    taken = {name for name in names if counts[name] == 1}
    seen: Counter = Counter()
    unique = []
    for name in names:
        if counts[name] > 1:
            seen[name] += 1
            while f"{name}[{seen[name]}]" in taken:
                seen[name] += 1
            label = f"{name}[{seen[name]}]"
        else:
            label = name
        taken.add(label)
        unique.append(label)
    return unique


def assemble_samples(
    chain_results: Sequence[ChainResult],
    transform: BoundTransform | None = None,
) -> SampleArray:
    """Stack per-chain sample matrices into an ``[iteration, chain, parameter]`` array.

    Parameter columns are mapped back to constrained space when a transform
    is given; the trailing log-density column is copied unchanged. Chains
    with more rows than the shortest chain are truncated.

    Raises
    ------
    SamplerFailure
        If the chains disagree on the number of columns.
    """
    n_cols = {result.par.shape[1] for result in chain_results}
    if len(n_cols) != 1:
        raise SamplerFailure(f"Chains returned different numbers of columns: {sorted(n_cols)}.")

    n_rows = [result.n_retained for result in chain_results]
    n_keep = min(n_rows)
    if len(set(n_rows)) > 1:
        warnings.warn(
            f"Chains returned different numbers of iterations {n_rows}; "
            f"truncating all chains to {n_keep}."
        )

    samples = np.empty((n_keep, len(chain_results), n_cols.pop()))
    for i, result in enumerate(chain_results):
        par = result.par[:n_keep].copy()
        if transform is not None:
            par[:, :-1] = transform.forward(par[:, :-1])
        samples[:, i, :] = par
    return samples


def aggregate_chains(
    chain_results: Sequence[ChainResult],
    algorithm: Algorithm,
    par_names: Sequence[str],
    model_label: str,
    transform: BoundTransform | None = None,
) -> MultiChainResult:
    """Combine the raw output of every chain into a :class:`MultiChainResult`.

    Parameters
    ----------
    chain_results : Sequence[ChainResult]
        Raw sampler output in sampling space, in chain order.
    algorithm : Algorithm
        Algorithm that produced the chains.
    par_names : Sequence[str]
        Model parameter names, possibly with repeats for vector parameters.
    model_label : str
        Label of the sampled model.
    transform : BoundTransform or None, optional
        Transform used during sampling, if any. Default is None.

    Returns
    -------
    MultiChainResult
        Samples in constrained space with per-chain diagnostics and timings.
        Warmup length and, for NUTS, the tree-depth counter are taken from
        the first chain.
    """
    if not chain_results:
        raise SamplerFailure("No chain results to aggregate.")

    samples = assemble_samples(chain_results, transform)
    names = make_unique_names(par_names)
    if len(names) != samples.shape[2] - 1:
        raise SamplerFailure(
            f"Chains returned {samples.shape[2] - 1} parameters but the model has {len(names)}."
        )

    n_keep = samples.shape[0]
    sampler_params = [
        {key: values[:n_keep] for key, values in result.sampler_params.items()}
        for result in chain_results
    ]
    first = chain_results[0]
    result = MultiChainResult(
        samples=samples,
        par_names=names + [LP_LABEL],
        sampler_params=sampler_params,
        time_warmup=np.array([r.time_warmup for r in chain_results], dtype=float),
        time_total=np.array([r.time_total for r in chain_results], dtype=float),
        algorithm=algorithm,
        warmup=first.warmup,
        model=model_label,
        max_treedepth_hits=first.max_treedepth_hits if algorithm == Algorithm.NUTS else None,
    )
    logger.debug("Aggregated %r", result)
    return result
