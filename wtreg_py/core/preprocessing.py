"""
Preprocessing of station time series ahead of detiding and metabolism.

This module provides functions for:
- Hour-of-day covariates on the local clock
- Shifting records to interval midpoints for flux calculations
- Replacing missing weather observations with climatological means
"""

import numpy as np
import pandas as pd
from typing import List, Optional


# Weather variables filled with climatological means for each gas exchange model
CLIMATE_FILL_COLUMNS = {
    'Thiebault': ['ATemp', 'WSpd', 'BP'],
    'Wanninkhof': ['WSpd', 'BP'],  # BP is not used by Wanninkhof but is needed for DO saturation
}


def hour_of_day(stamps: pd.Series) -> np.ndarray:
    """
    Decimal hour of the local clock.

    Parameters
    ----------
    stamps : pd.Series
        Tz-aware timestamps

    Returns
    -------
    np.ndarray
        Hours in [0, 24), e.g. 13:30 -> 13.5
    """
    return (stamps.dt.hour + stamps.dt.minute / 60.0).to_numpy(dtype=float)


def interval_midpoints(
    data: pd.DataFrame,
    datetime_column: str = 'DateTimeStamp'
) -> pd.DataFrame:
    """
    Re-center a time series on the midpoints between consecutive records.

    Every numeric column becomes the average of adjacent values, and the
    timestamp becomes the midpoint of each interval, so that a series of n
    records yields n - 1 rows aligned with first differences.

    Parameters
    ----------
    data : pd.DataFrame
        Ascending time series
    datetime_column : str, optional
        Name of the timestamp column

    Returns
    -------
    pd.DataFrame
        Midpoint series with the same columns
    """
    stamps = data[datetime_column].reset_index(drop=True)
    half_steps = stamps.diff().iloc[1:].reset_index(drop=True) / 2
    out = pd.DataFrame({
        datetime_column: stamps.iloc[:-1].reset_index(drop=True) + half_steps
    })

    for col in data.columns:
        if col == datetime_column:
            continue
        values = pd.to_numeric(data[col], errors='coerce').to_numpy(dtype=float)
        out[col] = np.diff(values) / 2 + values[:-1]

    return out


def climate_means(
    data: pd.DataFrame,
    gasex: str = 'Thiebault',
    columns: Optional[List[str]] = None,
    datetime_column: str = 'DateTimeStamp'
) -> pd.DataFrame:
    """
    Replace missing weather values with monthly/hourly climatological means.

    Means are calculated for every month and hour combination from the
    available data, and only missing values are replaced.

    Parameters
    ----------
    data : pd.DataFrame
        Station time series
    gasex : str, optional
        'Thiebault' fills air temperature, wind speed and barometric
        pressure; 'Wanninkhof' fills wind speed and barometric pressure
    columns : list of str, optional
        Explicit columns to fill, overrides gasex
    datetime_column : str, optional
        Name of the timestamp column

    Returns
    -------
    pd.DataFrame
        Copy of the input with missing values replaced where a mean exists
    """
    if columns is None:
        if gasex not in CLIMATE_FILL_COLUMNS:
            raise ValueError(f"Unknown gas exchange model: {gasex}")
        columns = CLIMATE_FILL_COLUMNS[gasex]

    out = data.copy()
    stamps = out[datetime_column]
    keys = [stamps.dt.month.values, stamps.dt.hour.values]

    for col in columns:
        if col not in out.columns:
            continue
        values = pd.to_numeric(out[col], errors='coerce')
        clim = values.groupby(keys).transform('mean')
        out[col] = values.fillna(clim)

    return out
