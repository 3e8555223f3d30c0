"""Test the per-chain dispatch of samplers."""

import numpy as np
import pytest

from pymultichain import dispatch
from pymultichain.bounds import BoundTransform, LogDensityTarget
from pymultichain.samplers import SAMPLERS, Algorithm, ChainResult, run_mcmc_nuts
from pymultichain.utils.exceptions import ConfigError, DomainError, SamplerFailure
from pymultichain.utils.model import FunctionModel


def quadratic(x):
    return 0.5 * float(np.sum(x**2))


def quadratic_grad(x):
    return x


@pytest.fixture
def target():
    return LogDensityTarget(FunctionModel(quadratic, quadratic_grad, par=[0.0, 0.0]))


class RecordingSampler:
    """Fake sampler recording the arguments of every call."""

    def __init__(self, n_cols=3):
        self.calls = []
        self.n_cols = n_cols

    def __call__(self, iter, fn, gr, init, chain=1, thin=1, covar=None, seed=None, progress=False, warmup=None):
        self.calls.append(dict(fn=fn, gr=gr, init=init, chain=chain, thin=thin, seed=seed, warmup=warmup))
        return ChainResult(
            par=np.full((iter // thin, self.n_cols), float(chain)),
            sampler_params={},
            warmup=0,
            time_warmup=0.0,
            time_total=0.0,
        )


def test_to_sampling_space():
    inits = [np.array([1.0, 0.5]), np.array([2.0, 0.25])]
    assert dispatch.to_sampling_space(inits, None)[1][0] == 2.0

    transform = BoundTransform.from_bounds([0.0, 0.0], [np.inf, 1.0], n_pars=2)
    y = dispatch.to_sampling_space(inits, transform)
    np.testing.assert_allclose(transform.forward(np.array(y)), np.array(inits))

    with pytest.raises(DomainError):
        dispatch.to_sampling_space([np.array([1.0, 1.0])], transform)


class TestSamplerOptions:
    """Test validation of extra sampler options."""

    def test_accepted_option(self):
        dispatch.check_sampler_kwargs(run_mcmc_nuts, {"max_treedepth": 5, "delta": 0.9})

    def test_unknown_option(self):
        with pytest.raises(ConfigError, match="not accepted"):
            dispatch.check_sampler_kwargs(run_mcmc_nuts, {"L": 5})

    def test_reserved_option(self):
        with pytest.raises(ConfigError, match="dispatcher"):
            dispatch.check_sampler_kwargs(run_mcmc_nuts, {"thin": 2})


class TestRunChains:
    """Test the uniform call contract towards the samplers."""

    def test_gradient_withheld_for_rwm(self, monkeypatch, target):
        sampler = RecordingSampler()
        monkeypatch.setitem(SAMPLERS, Algorithm.RWM, sampler)
        dispatch.run_chains(Algorithm.RWM, target, [np.zeros(2)], iter=20)
        assert sampler.calls[0]["gr"] is None

    def test_each_chain_called_once(self, monkeypatch, target):
        sampler = RecordingSampler()
        monkeypatch.setitem(SAMPLERS, Algorithm.HMC, sampler)
        inits = [np.full(2, float(i)) for i in range(3)]
        results = dispatch.run_chains(Algorithm.HMC, target, inits, iter=20, thin=2, seed=1, warmup=4)

        assert [call["chain"] for call in sampler.calls] == [1, 2, 3]
        assert all(call["gr"] is not None for call in sampler.calls)
        assert all(call["thin"] == 2 and call["warmup"] == 4 for call in sampler.calls)
        for call, init in zip(sampler.calls, inits):
            np.testing.assert_array_equal(call["init"], init)
        # results come back in chain order
        assert [result.par[0, 0] for result in results] == [1.0, 2.0, 3.0]
        # independent seeds per chain
        states = [np.random.default_rng(call["seed"]).integers(1 << 30) for call in sampler.calls]
        assert len(set(states)) == 3

    def test_wrong_column_count(self, monkeypatch, target):
        monkeypatch.setitem(SAMPLERS, Algorithm.NUTS, RecordingSampler(n_cols=5))
        with pytest.raises(SamplerFailure, match="columns"):
            dispatch.run_chains(Algorithm.NUTS, target, [np.zeros(2)], iter=20)
