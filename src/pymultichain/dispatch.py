"""Running independent chains, sequentially or on a pool."""

import inspect
import logging
from concurrent.futures import ProcessPoolExecutor
from functools import partial
from multiprocessing import cpu_count
from typing import Any

import numpy as np
from tqdm import tqdm

from .bounds import BoundTransform, LogDensityTarget
from .samplers import Algorithm, ChainResult, get_sampler
from .utils.exceptions import ConfigError, SamplerFailure
from .utils.types import ChainSampler, FloatArray

logger = logging.getLogger(__name__)

# Arguments every sampler receives from the dispatcher rather than from the user.
_DISPATCHED_ARGS = ("iter", "fn", "gr", "init", "chain", "thin", "covar", "seed", "progress")


def to_sampling_space(
    inits: list[FloatArray], transform: BoundTransform | None
) -> list[FloatArray]:
    """Map constrained initial values into sampling space.

    Raises
    ------
    DomainError
        If an initial value lies on or outside its bounds.
    """
    if transform is None:
        return [np.array(x, dtype=float) for x in inits]
    return [transform.inverse(x) for x in inits]


def check_sampler_kwargs(sampler: ChainSampler, kwargs: dict[str, Any]) -> None:
    """Reject extra options the selected sampler does not accept."""
    accepted = _kwargs_from_function(inspect.signature(sampler))
    reserved = [k for k in kwargs if k in _DISPATCHED_ARGS]
    if reserved:
        raise ConfigError(f"Options {reserved} are set by the dispatcher and cannot be passed.")
    unknown = [k for k in kwargs if k not in accepted]
    if unknown:
        raise ConfigError(
            f"Options {unknown} are not accepted by {getattr(sampler, '__name__', type(sampler).__name__)}; "
            f"valid options are {[k for k in accepted if k not in _DISPATCHED_ARGS]}."
        )


def _kwargs_from_function(sig: inspect.Signature) -> list[str]:
    return [
        name
        for name, param in sig.parameters.items()
        if param.kind
        in (inspect.Parameter.KEYWORD_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]


def run_chains(
    algorithm: Algorithm,
    target: LogDensityTarget,
    inits: list[FloatArray],
    iter: int,
    thin: int = 1,
    covar: FloatArray | None = None,
    seed: int | None = None,
    chain_pool: Any | None = None,
    n_chain_processors: int | None = None,
    progress: bool = False,
    **kwargs,
) -> list[ChainResult]:
    """Run one sampler invocation per chain and collect the results in chain order.

    Parameters
    ----------
    algorithm : Algorithm
        The sampling algorithm.
    target : LogDensityTarget
        Log-density and gradient in sampling space, shared by all chains.
    inits : list of FloatArray
        Initial points in sampling space, one per chain.
    iter : int
        Number of iterations per chain.
    thin : int, optional
        Thinning rate. Default is 1.
    covar : FloatArray or None, optional
        Covariance matrix shared by all chains. Default is None.
    seed : int or None, optional
        Root seed; one independent child seed is spawned per chain.
    chain_pool : Any | None, optional
        User-provided pool for running chains in parallel. It must implement a
        map() method compatible with the standard library's map() function.
        Default is None.
    n_chain_processors : int or None, optional
        If greater than one and no ``chain_pool`` is given, chains run on an
        internal ProcessPoolExecutor with at most this many workers.
    progress : bool, optional
        Whether to show progress bars. Default is False.
    **kwargs
        Extra options passed to the sampler.

    Returns
    -------
    list of ChainResult
        One result per chain, in chain order.

    Raises
    ------
    ConfigError
        If ``kwargs`` holds options the sampler does not accept.
    SamplerFailure
        If any chain fails. No partial results are returned.
    """
    check_sampler_kwargs(get_sampler(algorithm), kwargs)

    n_chains = len(inits)
    seeds = np.random.SeedSequence(seed).spawn(n_chains)
    jobs = [
        {"chain": i + 1, "init": inits[i], "seed": seeds[i]}
        for i in range(n_chains)
    ]
    func = partial(
        _process_single_chain,
        algorithm=algorithm,
        target=target,
        iter=iter,
        thin=thin,
        covar=covar,
        progress=progress,
        sampler_kwargs=kwargs,
    )

    if chain_pool is not None:
        logger.info("Running %d chains on the provided pool", n_chains)
        results = list(chain_pool.map(func, jobs))
    elif n_chain_processors is not None and n_chain_processors > 1 and n_chains > 1:
        max_workers = min(n_chain_processors, n_chains, cpu_count())
        logger.info("Running %d chains on %d processes", n_chains, max_workers)
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(func, jobs))
    else:
        results = [func(job) for job in tqdm(jobs, disable=not progress or n_chains == 1)]

    return results


def _process_single_chain(
    chain_args: dict,
    algorithm: Algorithm,
    target: LogDensityTarget,
    iter: int,
    thin: int,
    covar: FloatArray | None,
    progress: bool,
    sampler_kwargs: dict[str, Any],
) -> ChainResult:
    """Run the sampler for a single chain.

    This function is designed to be called by pool.map() for chain-level
    parallelism, so everything it needs is passed in and picklable.
    """
    chain = chain_args["chain"]
    sampler = get_sampler(algorithm)
    gr = target.gradient if algorithm.uses_gradient else None

    try:
        result = sampler(
            iter=iter,
            fn=target.log_density,
            gr=gr,
            init=chain_args["init"],
            chain=chain,
            thin=thin,
            covar=covar,
            seed=chain_args["seed"],
            progress=progress,
            **sampler_kwargs,
        )
    except Exception as e:
        raise SamplerFailure(f"Chain {chain} failed with {algorithm}: {e}") from e

    n_cols = len(chain_args["init"]) + 1
    if result.par.shape[1] != n_cols:
        raise SamplerFailure(
            f"Chain {chain} returned {result.par.shape[1]} columns, expected {n_cols}."
        )
    logger.debug(
        "Chain %d finished in %.3fs (warmup %.3fs)",
        chain,
        result.time_total,
        result.time_warmup,
    )
    return result
