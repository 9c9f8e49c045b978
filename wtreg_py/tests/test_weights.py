"""
Tests for the tri-cube kernel weights.
"""

import pytest
import numpy as np
import pandas as pd
from ..core.weights import (
    tricube,
    circular_distance,
    resolve_windows,
    kernel_weights,
    calculate_weights,
    KernelWeights
)


@pytest.fixture
def covariates():
    """Two days of half-hourly decimal time, hour and tide."""
    n = 96
    hours = np.arange(n) * 0.5
    return pd.DataFrame({
        'DateTimeStamp': pd.date_range('2012-06-01', periods=n, freq='30min', tz='America/Jamaica'),
        'dec_time': hours / 24,
        'hour': hours % 24,
        'Tide': 1.5 + np.sin(2 * np.pi * hours / 12.42),
    })


class TestTricube:
    """Test the weighting function."""

    def test_boundaries(self):
        assert tricube(0.0, 2.0) == pytest.approx(1.0)
        assert tricube(2.0, 2.0) == 0.0
        assert tricube(3.0, 2.0) == 0.0

    def test_inside(self):
        assert tricube(0.5, 1.0) == pytest.approx((1 - 0.125) ** 3)

    def test_missing_distance(self):
        assert tricube(np.array([np.nan]), 1.0)[0] == 0.0

    def test_range(self):
        wts = tricube(np.linspace(0, 5, 101), 3.0)
        assert np.all(wts >= 0) and np.all(wts <= 1)
        assert np.all(np.diff(wts) <= 0)


class TestCircularDistance:
    """Test the hour of day distance."""

    def test_wraparound_symmetric(self):
        assert circular_distance(23, 1) == pytest.approx(2)
        assert circular_distance(1, 23) == pytest.approx(2)

    def test_direct(self):
        assert circular_distance(10, 4) == pytest.approx(6)
        assert circular_distance(0, 12) == pytest.approx(12)


class TestResolveWindows:
    """Test window validation."""

    def test_auto_tide(self):
        tide = np.array([0.2, 1.0, 2.2])
        assert resolve_windows((4, 12, None), tide) == (4.0, 12.0, 1.0)
        assert resolve_windows((4, 12, 'auto'), tide) == (4.0, 12.0, 1.0)

    def test_invalid(self):
        with pytest.raises(ValueError, match="Three half-window widths"):
            resolve_windows((4, 12), [1, 2])
        with pytest.raises(ValueError, match="must be positive"):
            resolve_windows((0, 12, 1), [1, 2])
        with pytest.raises(ValueError, match="must be positive"):
            resolve_windows((1, 12, None), [1, 1])


class TestKernelWeights:
    """Test the weight properties for every reference observation."""

    @pytest.mark.parametrize('row', [0, 17, 48, 95])
    def test_weight_properties(self, covariates, row):
        values = covariates[['dec_time', 'hour', 'Tide']].to_numpy()
        result = kernel_weights(values[[row]], values, (0.5, 6, 0.5), min_positive=20)

        assert isinstance(result, KernelWeights)
        wts = result.dense(len(values))[:, 0]
        assert np.all(wts >= 0) and np.all(wts <= 1)
        assert result.n_positive[0] >= 20
        assert wts[row] == pytest.approx(1.0)

        # zero outside each widened half-window
        win_time, win_hour, win_tide = result.windows
        ref = values[row]
        outside = (
            (np.abs(values[:, 0] - ref[0]) >= win_time) |
            (circular_distance(values[:, 1], ref[1]) >= win_hour) |
            (np.abs(values[:, 2] - ref[2]) >= win_tide)
        )
        assert np.all(wts[outside] == 0)

    def test_widening(self, covariates):
        values = covariates[['dec_time', 'hour', 'Tide']].to_numpy()
        result = kernel_weights(values[[10]], values, (0.01, 0.1, 0.01), min_positive=10)

        assert result.n_expansions > 0
        assert result.n_positive[0] >= 10
        assert result.windows[0] > 0.01

    def test_no_widening_needed(self, covariates):
        values = covariates[['dec_time', 'hour', 'Tide']].to_numpy()
        result = kernel_weights(values[[10]], values, (4, 12, 2), min_positive=5)
        assert result.n_expansions == 0
        assert result.windows == (4, 12, 2)

    def test_minimum_capped_at_available(self, covariates):
        """A minimum above the record length still terminates."""
        values = covariates[['dec_time', 'hour', 'Tide']].to_numpy()
        result = kernel_weights(values[[10]], values, (0.5, 6, 0.5), min_positive=1000)
        assert result.n_positive[0] == len(values)

    def test_no_complete_candidates(self):
        values = np.full((5, 3), np.nan)
        with pytest.raises(ValueError, match="No candidate observations"):
            kernel_weights(np.zeros((1, 3)), values, (1, 1, 1))

    def test_slice_matches_full(self, covariates):
        """Slicing by time does not change the weights."""
        values = covariates[['dec_time', 'hour', 'Tide']].to_numpy()
        sliced = kernel_weights(values[[40]], values, (0.2, 6, 1), slice_data=True, min_positive=5)
        full = kernel_weights(values[[40]], values, (0.2, 6, 1), slice_data=False, min_positive=5)
        np.testing.assert_array_equal(sliced.dense(len(values)), full.dense(len(values)))


class TestCalculateWeights:
    """Test the DataFrame interface."""

    def test_dense(self, covariates):
        wts = calculate_weights(covariates.iloc[30], covariates, windows=(1, 6, None), min_positive=10)
        assert wts.shape == (len(covariates), 1)
        assert wts[30, 0] == pytest.approx(1.0)

    def test_two_references(self, covariates):
        """Observed and mean tide references share the decimal time."""
        ref = covariates.iloc[[30, 30]].copy()
        ref.iloc[1, ref.columns.get_loc('Tide')] = covariates['Tide'].mean()

        wts = calculate_weights(ref, covariates, windows=(1, 6, 0.5), min_positive=10)
        assert wts.shape == (len(covariates), 2)
        assert not np.array_equal(wts[:, 0], wts[:, 1])

    def test_sparse(self, covariates):
        out = calculate_weights(covariates.iloc[30], covariates, windows=(1, 6, None),
                                sparse=True, min_positive=10)
        assert len(out) == 1
        assert np.all(out[0] > 0)
        assert 30 in out[0].index

    def test_return_all(self, covariates):
        out = calculate_weights(covariates.iloc[30], covariates, windows=(1, 6, None),
                                return_all=True, min_positive=10)
        assert list(out.columns) == ['DateTimeStamp', 'dec_time', 'hour', 'Tide', 'final']
        np.testing.assert_allclose(out['final'], out['dec_time'] * out['hour'] * out['Tide'])

    def test_missing_columns(self, covariates):
        with pytest.raises(ValueError, match="Weighting variables must be named"):
            calculate_weights(covariates.iloc[0], covariates.drop(columns='hour'))

    def test_references_must_share_time(self, covariates):
        with pytest.raises(ValueError, match="share one decimal time"):
            calculate_weights(covariates.iloc[[1, 2]], covariates)
