"""
Tests for the StationData container and timestamp checks.
"""

import pytest
import numpy as np
import pandas as pd
from ..core.data_structures import (
    StationData,
    as_station_data,
    check_timezone,
    check_sorted,
    check_duplicates,
    STATION_UNITS
)
from .conftest import make_station, SITE


class TestStationData:
    """Test the StationData class."""

    def test_default_units(self):
        """Standard columns pick up their units."""
        station = StationData(make_station(days=1))
        assert station.get_column_units('Tide') == STATION_UNITS['Tide']
        assert station.get_column_units('BP') == 'mb'
        assert station.categories['WSpd'] == 'weather'

    def test_unknown_column_units(self):
        station = StationData({'x': [1, 2, 3]})
        assert station.get_column_units('x') == 'dimensionless'
        assert station.categories['x'] == 'unknown'

    def test_check_required_variables(self):
        station = StationData(make_station(days=1))
        assert station.check_required_variables(['DO_obs', 'Tide'])

        with pytest.raises(ValueError, match="missing from the data: Depth"):
            station.check_required_variables(['DO_obs', 'Depth'])

        assert not station.check_required_variables(['Depth'], raise_error=False)

    def test_set_variable(self):
        station = StationData(make_station(days=1))
        station.set_variable('DO_pct', np.ones(len(station)), units='%', category='calculated')
        assert 'DO_pct' in station.data.columns
        assert station.get_column_units('DO_pct') == '%'

    def test_copy_is_independent(self):
        station = StationData(make_station(days=1))
        copied = station.copy()
        copied['Tide'] = 0.0
        assert not np.allclose(station['Tide'], 0.0)

    def test_repr(self):
        station = StationData(make_station(days=1))
        text = repr(station)
        assert 'StationData with 48 rows' in text
        assert '...' in text

    def test_as_station_data(self):
        """Wrapping never modifies the caller's frame."""
        df = make_station(days=1)
        df.index = df.index + 100
        station = as_station_data(df)
        station['Tide'] = 0.0
        assert station.data.index[0] == 0
        assert not np.allclose(df['Tide'], 0.0)

        with pytest.raises(ValueError, match="DataFrame or StationData"):
            as_station_data([1, 2, 3])


class TestTimestampChecks:
    """Test timezone, order and duplicate checks."""

    def test_valid_timestamps(self):
        station = StationData(make_station(days=1))
        station.check_timestamps(SITE['tz'])

    def test_timezone_mismatch(self):
        stamps = make_station(days=1)['DateTimeStamp']
        with pytest.raises(ValueError, match="differs from tz argument"):
            check_timezone(stamps, 'America/New_York')

    def test_naive_timestamps(self):
        stamps = pd.Series(pd.date_range('2012-06-01', periods=4, freq='30min'))
        with pytest.raises(ValueError, match="no timezone"):
            check_timezone(stamps, SITE['tz'])

    def test_not_datetime(self):
        with pytest.raises(ValueError, match="datetime column"):
            check_timezone(pd.Series(['2012-06-01']), SITE['tz'])

    def test_unsorted(self):
        stamps = make_station(days=1)['DateTimeStamp']
        swapped = stamps.iloc[[0, 2, 1, 3]].reset_index(drop=True)
        with pytest.raises(ValueError, match="unsorted, check rows: 2"):
            check_sorted(swapped)

    def test_duplicates(self):
        stamps = make_station(days=1)['DateTimeStamp']
        dup = pd.concat([stamps.iloc[:3], stamps.iloc[[2]]], ignore_index=True)
        with pytest.raises(ValueError, match="Duplicated observations found, check rows: 3"):
            check_duplicates(dup)

    def test_duplicates_allowed(self):
        df = make_station(days=1)
        df = pd.concat([df.iloc[:3], df.iloc[[2]]], ignore_index=True)
        StationData(df).check_timestamps(SITE['tz'], allow_duplicates=True)
