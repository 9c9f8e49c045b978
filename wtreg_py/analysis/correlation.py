"""
Correlation of solar altitude with tidal height change.

Where the tide and the sun are in phase over a period of days, detiding can
remove part of the biological signal. This diagnostic gives, for each
observation, the correlation between the sun's altitude and the angle of the
tidal height curve within a moving window of days.
"""

from typing import Union
import warnings

import numpy as np
import pandas as pd
from astral import Observer
from astral.sun import elevation
from scipy import stats
from tqdm import tqdm

from ..core.data_structures import StationData, as_station_data
from ..core.weights import kernel_weights
from .detide import prepare_weighting_variables


# window widths large enough that only decimal time limits the weights
OPEN_WINDOW = 1e6
MIN_WINDOW_POSITIVE = 3

CORRELATION_METHODS = {
    'pearson': stats.pearsonr,
    'spearman': stats.spearmanr,
    'kendall': stats.kendalltau,
}


def sun_altitude(stamps: pd.Series, lat: float, long: float) -> np.ndarray:
    """Solar elevation (degrees above the horizon) at tz-aware timestamps."""
    observer = Observer(latitude=lat, longitude=long)
    return np.array([elevation(observer, stamp.to_pydatetime()) for stamp in pd.Series(stamps)])


def tide_angle(tide: np.ndarray, dec_time: np.ndarray) -> np.ndarray:
    """
    Angle (degrees) of the tidal height curve against decimal time.

    The first difference is repeated so the output matches the input length.
    """
    tide = np.asarray(tide, dtype=float)
    dec_time = np.asarray(dec_time, dtype=float)
    if len(tide) < 2:
        return np.full(len(tide), np.nan)

    d_tide = np.diff(tide)
    d_time = np.diff(dec_time)
    d_tide = np.concatenate([d_tide[:1], d_tide])
    d_time = np.concatenate([d_time[:1], d_time])

    with np.errstate(divide='ignore', invalid='ignore'):
        return np.degrees(np.arctan(d_tide / d_time))


def evalcor(
    data: Union[pd.DataFrame, StationData],
    tz: str,
    lat: float,
    long: float,
    depth_column: str = 'Tide',
    daywin: float = 6,
    method: str = 'pearson',
    progress_bar: bool = False,
    datetime_column: str = 'DateTimeStamp'
) -> pd.Series:
    """
    Moving-window correlation of sun altitude with tidal change.

    Args:
        data: Time series with tz-aware timestamps and tidal height
        tz: Timezone name of the site
        lat: Latitude (decimal degrees)
        long: Longitude (decimal degrees, negative west)
        depth_column: Tidal height column
        daywin: Half-window width in days
        method: 'pearson', 'spearman' or 'kendall'
        progress_bar: Show a tqdm progress bar
        datetime_column: Name of the timestamp column

    Returns:
        Series of correlations, one per observation, indexed by timestamp.
        Missing where the window has too few complete pairs.
    """
    if method not in CORRELATION_METHODS:
        raise ValueError(f"method must be one of {list(CORRELATION_METHODS)}, got {method}")
    if daywin <= 0:
        raise ValueError(f"daywin must be positive, got {daywin}")

    station = as_station_data(data, datetime_column=datetime_column)
    station.check_required_variables([datetime_column, depth_column])
    station.check_timestamps(tz)

    df = station.data.rename(columns={depth_column: 'Tide'})
    df = prepare_weighting_variables(df, tz, lat, long, datetime_column=datetime_column)

    sun = sun_altitude(df[datetime_column], lat, long)
    angle = tide_angle(df['Tide'].to_numpy(dtype=float), df['dec_time'].to_numpy(dtype=float))

    covariates = df[['dec_time', 'hour', 'Tide']].to_numpy(dtype=float)
    windows = (float(daywin), OPEN_WINDOW, OPEN_WINDOW)
    corr_func = CORRELATION_METHODS[method]

    out = np.full(len(df), np.nan)
    with warnings.catch_warnings():
        # constant inputs inside a window give a missing correlation
        warnings.simplefilter('ignore', stats.ConstantInputWarning)
        for i in tqdm(range(len(df)), desc="Correlating", disable=not progress_bar):
            if not np.isfinite(covariates[i]).all():
                continue
            wts = kernel_weights(covariates[[i]], covariates, windows, min_positive=MIN_WINDOW_POSITIVE)
            rows = wts.rows[wts.weights[:, 0] > 0]
            x, y = sun[rows], angle[rows]
            ok = np.isfinite(x) & np.isfinite(y)
            if ok.sum() < MIN_WINDOW_POSITIVE:
                continue
            out[i] = corr_func(x[ok], y[ok])[0]

    return pd.Series(out, index=pd.DatetimeIndex(df[datetime_column]), name='cor')
