"""Multi-chain MCMC sampling of a model with optional parameter bounds."""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from .analysis.aggregate import MultiChainResult, aggregate_chains
from .bounds import BoundTransform, LogDensityTarget
from .dispatch import run_chains, to_sampling_space
from .samplers import Algorithm
from .utils.types import FloatArray, ModelHandle
from .validation import (
    resolve_initial_values,
    validate_algorithm,
    validate_covariance,
    validate_run_settings,
    validate_warmup,
)

logger = logging.getLogger(__name__)


def sample_model(
    model: ModelHandle,
    iter: int,
    algorithm: Algorithm | str = Algorithm.NUTS,
    chains: int = 1,
    init: Callable[[], Any] | Sequence[Sequence[float]] | None = None,
    covar: FloatArray | None = None,
    lower: Sequence[float] | None = None,
    upper: Sequence[float] | None = None,
    thin: float = 1,
    seed: int | None = None,
    chain_pool: Any | None = None,
    n_chain_processors: int | None = None,
    progress: bool = False,
    **kwargs,
) -> MultiChainResult:
    """Draw samples from the posterior of a model with one of several MCMC algorithms.

    The user is responsible for specifying the model properly (priors,
    starting values, fixed parameters) and for assessing the convergence of
    the resulting samples before making inference.

    Parameters
    ----------
    model : ModelHandle
        The model to sample. Its objective is the negative log-density.
    iter : int
        Number of iterations per chain, including warmup. Must exceed 10.
    algorithm : Algorithm or str, optional
        One of ``"NUTS"``, ``"RWM"`` or ``"HMC"``. Default is ``"NUTS"``.
    chains : int, optional
        Number of independent chains. Default is 1.
    init : callable, sequence of vectors or None, optional
        Initial values in constrained space. None uses the model's current
        parameters for every chain, a callable is invoked once per chain, and
        a sequence must hold one vector per chain. Dispersed initial values
        are strongly recommended.
    covar : FloatArray or None, optional
        Covariance matrix in sampling space. Its lower Cholesky factor is used
        to decorrelate the parameters, which makes sampling more efficient when
        it approximates the posterior covariance. Default is None.
    lower, upper : Sequence[float] or None, optional
        Per-parameter bounds, ``-inf``/``inf`` where a parameter is
        unbounded. If either is given, bounded parameters are sampled in an
        unconstrained space and mapped back. Default is None.
    thin : float, optional
        Thinning rate, floored to an integer. Default is 1 (keep all samples).
    seed : int or None, optional
        Root random seed; each chain receives an independent child seed.
    chain_pool : Any | None, optional
        User-provided pool with a map() method for running chains in parallel.
    n_chain_processors : int or None, optional
        Number of processes for an internal pool when ``chain_pool`` is None.
    progress : bool, optional
        Whether to show progress bars. Default is False.
    **kwargs
        Further options passed to the sampler, e.g. ``max_treedepth`` and
        ``delta`` for NUTS, ``L`` and ``eps`` for HMC, ``alpha`` for RWM and
        ``warmup`` for all.

    Returns
    -------
    MultiChainResult
        Samples of shape ``(iter // thin, chains, n_pars + 1)`` in
        constrained space together with sampler diagnostics and timings.

    Raises
    ------
    ConfigError
        If the configuration is malformed.
    DomainError
        If an initial value is on or outside its bounds.
    SamplerFailure
        If any chain fails.

    Examples
    --------
    >>> model = FunctionModel(fn=nll, gr=nll_grad, par=[1.0, 0.0], names=["sigma", "mu"])
    >>> result = sample_model(
    ...     model,
    ...     iter=2000,
    ...     chains=3,
    ...     init=lambda: [rng.uniform(0.5, 2.0), rng.normal()],
    ...     lower=[0.0, -np.inf],
    ... )
    >>> result.samples.shape
    (2000, 3, 3)
    """
    thin, iter = validate_run_settings(chains, iter, thin)
    validate_warmup(kwargs.get("warmup"), iter)
    algorithm = validate_algorithm(algorithm)
    inits = resolve_initial_values(init, model, chains)
    n_pars = len(inits[0])
    covar = validate_covariance(covar, n_pars)
    model.quiet()

    bounded = not (lower is None and upper is None)
    transform = BoundTransform.from_bounds(lower, upper, n_pars) if bounded else None
    target = LogDensityTarget(model, transform)
    sampling_inits = to_sampling_space(inits, transform)

    logger.info("Sampling model %r with %s", model.label(), algorithm)
    logger.info("Number of chains     : %d", chains)
    logger.info("Iterations per chain : %d (thin=%d)", iter, thin)
    logger.info("Bounded parameters   : %s", bounded and transform.bounded)

    chain_results = run_chains(
        algorithm,
        target,
        sampling_inits,
        iter=iter,
        thin=thin,
        covar=covar,
        seed=seed,
        chain_pool=chain_pool,
        n_chain_processors=n_chain_processors,
        progress=progress,
        **kwargs,
    )

    return aggregate_chains(
        chain_results,
        algorithm=algorithm,
        par_names=model.parameter_names(),
        model_label=model.label(),
        transform=transform,
    )
