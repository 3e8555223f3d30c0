"""Test the single-chain RWM, HMC and NUTS samplers."""

import numpy as np
import pytest
from scipy import stats

from pymultichain.samplers import (
    SAMPLERS,
    Algorithm,
    get_sampler,
    run_mcmc_hmc,
    run_mcmc_nuts,
    run_mcmc_rwm,
)
from pymultichain.samplers.hmc import HMC_FIELDS
from pymultichain.samplers.nuts import NUTS_FIELDS

MEAN = np.array([1.0, -2.0])
SD = np.array([1.0, 0.5])


def gaussian_log_density(x):
    return -0.5 * float(np.sum(((x - MEAN) / SD) ** 2))


def gaussian_gradient(x):
    return -(x - MEAN) / SD**2


ALL_SAMPLERS = [run_mcmc_rwm, run_mcmc_hmc, run_mcmc_nuts]


def test_dispatch_table_covers_every_algorithm():
    assert set(SAMPLERS) == set(Algorithm)
    assert get_sampler(Algorithm.NUTS) is run_mcmc_nuts
    assert not Algorithm.RWM.uses_gradient
    assert Algorithm.HMC.uses_gradient


class TestChainContract:
    """Test the shape of the output shared by every sampler."""

    @pytest.mark.parametrize("sampler", ALL_SAMPLERS)
    def test_output_shape(self, sampler):
        result = sampler(
            iter=40,
            fn=gaussian_log_density,
            gr=gaussian_gradient,
            init=np.zeros(2),
            thin=1,
            seed=1,
        )
        assert result.par.shape == (40, 3)
        assert result.warmup == 20
        assert np.all(np.isfinite(result.par))
        assert 0.0 <= result.time_warmup <= result.time_total
        for values in result.sampler_params.values():
            assert values.shape == (40,)

    @pytest.mark.parametrize("sampler", ALL_SAMPLERS)
    def test_thinning(self, sampler):
        result = sampler(
            iter=50,
            fn=gaussian_log_density,
            gr=gaussian_gradient,
            init=np.zeros(2),
            thin=4,
            warmup=20,
            seed=2,
        )
        assert result.par.shape == (12, 3)
        assert result.warmup == 5

    @pytest.mark.parametrize("sampler", ALL_SAMPLERS)
    def test_lp_column_is_log_density(self, sampler):
        result = sampler(
            iter=30, fn=gaussian_log_density, gr=gaussian_gradient, init=np.zeros(2), seed=3
        )
        for row in result.par:
            assert row[-1] == pytest.approx(gaussian_log_density(row[:-1]))

    @pytest.mark.parametrize("sampler", ALL_SAMPLERS)
    def test_seed_reproducibility(self, sampler):
        kwargs = dict(iter=30, fn=gaussian_log_density, gr=gaussian_gradient, init=np.zeros(2))
        first = sampler(seed=11, **kwargs)
        second = sampler(seed=11, **kwargs)
        np.testing.assert_array_equal(first.par, second.par)

    @pytest.mark.parametrize("sampler", ALL_SAMPLERS)
    def test_non_finite_initial_density(self, sampler):
        with pytest.raises(ValueError):
            sampler(
                iter=20,
                fn=lambda x: -np.inf,
                gr=gaussian_gradient,
                init=np.zeros(2),
            )

    def test_diagnostic_names(self):
        hmc = run_mcmc_hmc(30, gaussian_log_density, gaussian_gradient, np.zeros(2), seed=4)
        nuts = run_mcmc_nuts(30, gaussian_log_density, gaussian_gradient, np.zeros(2), seed=4)
        rwm = run_mcmc_rwm(30, gaussian_log_density, None, np.zeros(2), seed=4)
        assert tuple(hmc.sampler_params) == HMC_FIELDS
        assert tuple(nuts.sampler_params) == NUTS_FIELDS
        assert tuple(rwm.sampler_params) == ("accept_stat__",)
        assert nuts.max_treedepth_hits is not None
        assert hmc.max_treedepth_hits is None


class TestNUTS:
    """Test behaviour specific to the No-U-Turn sampler."""

    def test_tree_depth_bounded(self):
        result = run_mcmc_nuts(
            60, gaussian_log_density, gaussian_gradient, np.zeros(2), max_treedepth=3, seed=5
        )
        assert np.all(result.sampler_params["treedepth__"] <= 3)
        assert np.all(result.sampler_params["n_leapfrog__"] <= 2**3 - 1)

    def test_tree_depth_hits_warn(self):
        with pytest.warns(UserWarning, match="maximum tree depth"):
            result = run_mcmc_nuts(
                40,
                gaussian_log_density,
                gaussian_gradient,
                np.zeros(2),
                max_treedepth=1,
                eps=1e-3,
                seed=6,
            )
        assert result.max_treedepth_hits == 20

    def test_fixed_step_size(self):
        result = run_mcmc_nuts(
            30, gaussian_log_density, gaussian_gradient, np.zeros(2), eps=0.3, seed=7
        )
        np.testing.assert_array_equal(result.sampler_params["stepsize__"], 0.3)


class TestPosteriorMoments:
    """Test that each sampler recovers the moments of a Gaussian target."""

    @pytest.mark.parametrize(
        "sampler, iter, kwargs",
        [
            (run_mcmc_rwm, 6000, {"alpha": 0.8}),
            (run_mcmc_hmc, 1500, {"L": 5}),
            (run_mcmc_nuts, 1500, {}),
        ],
    )
    def test_gaussian_moments(self, sampler, iter, kwargs):
        result = sampler(
            iter=iter,
            fn=gaussian_log_density,
            gr=gaussian_gradient,
            init=np.array([0.0, 0.0]),
            seed=2024,
            **kwargs,
        )
        draws = result.par[result.warmup :, :-1]
        summary = stats.describe(draws)
        np.testing.assert_allclose(summary.mean, MEAN, atol=0.25)
        np.testing.assert_allclose(np.sqrt(summary.variance), SD, rtol=0.3)

    def test_covariance_rotation(self):
        """Test that sampling with a covariance matrix still targets the same density."""
        covar = np.diag(SD**2)
        result = run_mcmc_nuts(
            1500,
            gaussian_log_density,
            gaussian_gradient,
            np.zeros(2),
            covar=covar,
            seed=99,
        )
        draws = result.par[result.warmup :, :-1]
        np.testing.assert_allclose(draws.mean(axis=0), MEAN, atol=0.25)
