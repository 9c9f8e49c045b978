"""
Tests for the sun altitude and tidal change diagnostic.
"""

import pytest
import numpy as np
import pandas as pd
from ..analysis.correlation import sun_altitude, tide_angle, evalcor
from .conftest import make_station, SITE


def test_sun_altitude():
    stamps = pd.Series(pd.to_datetime(['2012-06-01 12:00', '2012-06-01 00:00'])).dt.tz_localize(SITE['tz'])
    alt = sun_altitude(stamps, SITE['lat'], SITE['long'])
    assert alt[0] > 60
    assert alt[1] < 0


class TestTideAngle:
    def test_first_difference_repeated(self):
        angle = tide_angle(np.array([0.0, 1.0, 1.0, 0.0]), np.array([0.0, 1.0, 2.0, 3.0]))
        np.testing.assert_allclose(angle, [45, 45, 0, -45])

    def test_short_series(self):
        assert np.isnan(tide_angle(np.array([1.0]), np.array([0.0]))).all()


class TestEvalcor:
    """Test the moving window correlation."""

    @pytest.fixture(scope='class')
    def correlations(self):
        return evalcor(make_station(days=4), daywin=1, **SITE)

    def test_output(self, correlations):
        assert len(correlations) == 4 * 48
        assert isinstance(correlations.index, pd.DatetimeIndex)
        vals = correlations.dropna()
        assert len(vals) > 0.9 * len(correlations)
        assert ((vals >= -1) & (vals <= 1)).all()

    def test_rank_methods(self):
        station = make_station(days=2)
        spearman = evalcor(station, daywin=1, method='spearman', **SITE)
        kendall = evalcor(station, daywin=1, method='kendall', **SITE)
        assert spearman.notna().any()
        assert (kendall.dropna().abs() <= 1).all()

    def test_invalid(self):
        station = make_station(days=1)
        with pytest.raises(ValueError, match="method must be one of"):
            evalcor(station, method='distance', **SITE)
        with pytest.raises(ValueError, match="daywin must be positive"):
            evalcor(station, daywin=0, **SITE)
        with pytest.raises(ValueError, match="missing from the data: Depth"):
            evalcor(station, depth_column='Depth', **SITE)
