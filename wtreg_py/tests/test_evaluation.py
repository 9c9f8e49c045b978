"""
Tests for metabolism summaries and the detiding objective.
"""

import pytest
import numpy as np
import pandas as pd
from ..analysis.evaluation import (
    meteval,
    objfun,
    metric_difference,
    anomaly_percent,
    MetabEvaluation,
    EVAL_METRICS
)
from ..analysis.metabolism import MetabResult, ecometab
from .conftest import make_station, SITE


def daily_result(pg, rt):
    """MetabResult built directly from daily values."""
    n = len(pg)
    data = pd.DataFrame({
        'Date': pd.date_range('2012-06-01', periods=n, freq='D'),
        'Pg': np.asarray(pg, dtype=float),
        'Rt': np.asarray(rt, dtype=float),
    })
    data['NEM'] = data['Pg'] + data['Rt']
    return MetabResult(data=data, do_column='DO_obs', depth_column=None, rawdat=pd.DataFrame())


class TestMeteval:
    """Test the summary statistics."""

    def test_no_anomalies(self):
        result = meteval(daily_result([100, 200, 300], [-100, -150, -200]), all=False)
        assert result.anomPg == 0
        assert result.anomRt == 0
        assert result.meanPg == pytest.approx(200)
        assert result.sdPg == pytest.approx(100)
        assert result.meanRt == pytest.approx(-150)
        assert result.n_days == 3

    def test_half_anomalous(self):
        result = meteval(daily_result([100, -50, 200, 0], [-100, 10, -20, -30]), all=False)
        assert result.anomPg == pytest.approx(50)
        assert result.anomRt == pytest.approx(25)

    def test_missing_days_ignored(self):
        """Days without both Pg and Rt are left out."""
        result = meteval(daily_result([100, np.nan, -50, 300], [-100, -100, np.nan, -50]), all=False)
        assert result.n_days == 2
        assert result.meanPg == pytest.approx(200)
        assert result.anomPg == 0

    def test_to_dict(self):
        result = meteval(daily_result([100, 200], [-100, -200]), all=False)
        assert list(result.to_dict()) == list(EVAL_METRICS)
        assert result.to_series()['meanRt'] == pytest.approx(-150)

    def test_no_tide_column_warns(self):
        with pytest.warns(UserWarning, match="No tidal height column"):
            result = meteval(daily_result([100, 200], [-100, -200]), all=True)
        assert result.monthly is None


def test_anomaly_percent_empty():
    assert np.isnan(anomaly_percent(pd.Series([np.nan, np.nan])))


class TestMonthlyEvaluation:
    """Test the monthly tidal correlation table."""

    @pytest.fixture(scope='class')
    def evaluation(self):
        station = make_station(days=10, start='2012-06-25 00:00', tide_effect=0.5, diel_amplitude=1.0)
        return meteval(ecometab(station, **SITE), all=True)

    def test_months(self, evaluation):
        monthly = evaluation.monthly
        assert list(monthly['month']) == ['06', '07']
        for col in ['DOcor', 'Pgcor', 'Rtcor', 'anomPgmon', 'anomRtmon']:
            assert col in monthly.columns

    def test_do_tide_correlation(self, evaluation):
        """DO was generated with a positive tidal effect."""
        assert (evaluation.monthly['DOcor'] > 0).all()

    def test_correlation_bounds(self, evaluation):
        for col in ['DOcor', 'Pgcor', 'Rtcor']:
            vals = evaluation.monthly[col].dropna()
            assert ((vals >= -1) & (vals <= 1)).all()


class TestObjective:
    """Test the comparison of observed and detided summaries."""

    @pytest.fixture
    def obs(self):
        return MetabEvaluation(meanPg=200, sdPg=80, anomPg=20, meanRt=-150, sdRt=60, anomRt=10)

    def test_identical_is_zero(self, obs):
        assert objfun(obs, obs) == pytest.approx(0)

    def test_mean_metric_symmetric(self):
        assert metric_difference('meanPg', 100, 200) == pytest.approx(np.log(2))
        assert metric_difference('meanPg', 200, 100) == pytest.approx(np.log(2))

    def test_spread_rewards_reduction(self):
        assert metric_difference('sdPg', 80, 40) < 0
        assert metric_difference('anomRt', 10, 20) > 0
        assert metric_difference('anomPg', 0, 0) == 0

    def test_reduced_anomalies_lower_objective(self, obs):
        better = MetabEvaluation(meanPg=200, sdPg=50, anomPg=5, meanRt=-150, sdRt=40, anomRt=0)
        worse = MetabEvaluation(meanPg=200, sdPg=120, anomPg=40, meanRt=-150, sdRt=90, anomRt=30)
        assert objfun(obs, better) < 0 < objfun(obs, worse)

    def test_changed_mean_penalized(self, obs):
        shifted = MetabEvaluation(meanPg=400, sdPg=80, anomPg=20, meanRt=-150, sdRt=60, anomRt=10)
        assert objfun(obs, shifted) == pytest.approx(np.log(2))

    def test_sign_flip_penalized(self, obs):
        """Inverted means never score as well as an unchanged mean."""
        flipped = MetabEvaluation(meanPg=-200, sdPg=80, anomPg=20, meanRt=150, sdRt=60, anomRt=10)
        assert metric_difference('meanPg', 200, -200) == np.inf
        assert metric_difference('meanRt', -150, 0) == np.inf
        assert objfun(obs, flipped) > objfun(obs, obs)
        assert not np.isfinite(objfun(obs, flipped))

    def test_same_sign_negative_means(self):
        assert metric_difference('meanRt', -100, -200) == pytest.approx(np.log(2))

    def test_subset_and_weights(self, obs):
        dtd = MetabEvaluation(meanPg=200, sdPg=40, anomPg=0, meanRt=-150, sdRt=60, anomRt=10)
        only_sd = objfun(obs, dtd, vls=['sdPg'])
        assert only_sd == pytest.approx((40 - 80) / 60)
        weighted = objfun(obs, dtd, vls=['sdPg', 'anomPg'], weights={'anomPg': 0.0})
        assert weighted == pytest.approx(only_sd)

    def test_undefined_metric(self, obs):
        dtd = MetabEvaluation(meanPg=np.nan, sdPg=40, anomPg=0, meanRt=-150, sdRt=60, anomRt=10)
        assert np.isnan(objfun(obs, dtd))

    def test_unknown_metric(self, obs):
        with pytest.raises(ValueError, match="Unknown evaluation metrics"):
            objfun(obs, obs, vls=['meanNEM'])

    def test_accepts_metab_results(self):
        result = daily_result([100, 200, -10], [-100, -150, -200])
        assert objfun(result, result) == pytest.approx(0)
