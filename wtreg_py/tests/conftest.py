"""
Shared synthetic station data for the tests.

Series are generated at the Sapelo Island site with a 12.42 hour tide and a
diel DO cycle peaking mid afternoon.
"""

import numpy as np
import pandas as pd
import pytest


SITE = {'tz': 'America/Jamaica', 'lat': 31.39, 'long': -81.28}
TIDAL_PERIOD = 12.42  # hours


def make_station(
    days: float = 2,
    start: str = '2012-06-01 00:00',
    freq_minutes: int = 30,
    tide_effect: float = 2.0,
    diel_amplitude: float = 0.5,
    mean_tide: float = 1.5,
    tide_amplitude: float = 1.0,
    tz: str = SITE['tz']
) -> pd.DataFrame:
    """
    Regular series with DO = diel cycle + tide_effect * tidal anomaly.

    Weather and water quality variables vary smoothly so gas exchange is
    well defined.
    """
    n = int(days * 24 * 60 / freq_minutes)
    stamps = pd.date_range(start, periods=n, freq=f'{freq_minutes}min', tz=tz)
    hours = np.arange(n) * freq_minutes / 60.0
    clock = np.asarray(stamps.hour + stamps.minute / 60.0, dtype=float)

    tide_anom = tide_amplitude * np.sin(2 * np.pi * hours / TIDAL_PERIOD)
    diel = diel_amplitude * np.sin(2 * np.pi * (clock - 9) / 24)

    return pd.DataFrame({
        'DateTimeStamp': stamps,
        'Temp': 28 + 1.0 * np.sin(2 * np.pi * (clock - 10) / 24),
        'Sal': np.full(n, 30.0),
        'DO_obs': 7.0 + diel + tide_effect * tide_anom,
        'ATemp': 27 + 2.0 * np.sin(2 * np.pi * (clock - 10) / 24),
        'BP': np.full(n, 1013.0),
        'WSpd': 3 + 0.5 * np.cos(2 * np.pi * hours / 24),
        'Tide': mean_tide + tide_anom,
    })


@pytest.fixture
def site():
    return dict(SITE)


@pytest.fixture
def tidal_station():
    """Two days of DO with a strong tidal signal."""
    return make_station(days=2)


@pytest.fixture
def week_station():
    """Seven days of DO driven only by a diel cycle."""
    return make_station(days=7, tide_effect=0.0, diel_amplitude=1.0)
