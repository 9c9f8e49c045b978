"""
Metabolic day identification from sunrise and sunset times.

The metabolic day is the 24 hour period between sunrises on two adjacent
calendar days. Each observation is labelled with the metabolic day it falls
in, whether it follows a sunrise (day) or a sunset (night), the hours of
daylight on that metabolic day, and a continuous decimal time coordinate.
"""

import warnings
from datetime import timedelta
from typing import Union

import numpy as np
import pandas as pd
from astral import Observer
from astral.sun import sunrise, sunset

from .data_structures import check_timezone


SOLAR_COLUMNS = ['metab_date', 'solar_period', 'solar_time', 'day_hrs']


def sun_events(
    start_date,
    end_date,
    tz: str,
    lat: float,
    long: float
) -> pd.DataFrame:
    """
    Sunrise and sunset instants for every date in a range, in long format.

    Args:
        start_date: First calendar date (inclusive)
        end_date: Last calendar date (inclusive)
        tz: Timezone name of the site
        lat: Latitude (decimal degrees)
        long: Longitude (decimal degrees, negative west of prime meridian)

    Returns:
        DataFrame sorted by ``solar_time`` with one row per sun event and
        columns ``metab_date``, ``solar_period`` ('sunrise' or 'sunset'),
        ``solar_time`` and ``day_hrs``
    """
    observer = Observer(latitude=lat, longitude=long)
    days = pd.date_range(pd.Timestamp(start_date), pd.Timestamp(end_date), freq='D')

    rises, sets = [], []
    for day in days:
        try:
            rise = sunrise(observer, date=day.date(), tzinfo=tz)
            fall = sunset(observer, date=day.date(), tzinfo=tz)
        except ValueError as e:
            # sun never rises or sets on this date at this latitude
            warnings.warn(f"No sun events for {day.date()}: {e}")
            continue
        rises.append(pd.Timestamp(rise).tz_convert(tz))
        sets.append(pd.Timestamp(fall).tz_convert(tz))

    if not rises:
        raise ValueError(f"Could not calculate sunrise/sunset for lat {lat}, long {long}")

    events = pd.DataFrame({'sunrise': rises, 'sunset': sets})

    # sunset can fall on the next calendar day east or west of the timezone meridian
    fix = events['sunset'] < events['sunrise']
    events.loc[fix, 'sunset'] = events.loc[fix, 'sunset'] + timedelta(days=1)

    # remove repeated sun events
    rise_dates = events['sunrise'].dt.strftime('%Y-%m-%d')
    events = events[~rise_dates.duplicated()].reset_index(drop=True)
    events['metab_date'] = events['sunrise'].dt.date
    events['day_hrs'] = (events['sunset'] - events['sunrise']).dt.total_seconds() / 3600

    long_form = events.melt(
        id_vars=['metab_date', 'day_hrs'],
        value_vars=['sunrise', 'sunset'],
        var_name='solar_period',
        value_name='solar_time'
    )
    long_form['solar_time'] = pd.to_datetime(long_form['solar_time'], utc=True).dt.tz_convert(tz)
    long_form = long_form.sort_values('solar_time', kind='mergesort').reset_index(drop=True)

    return long_form[SOLAR_COLUMNS]


def metabolic_days(
    data: pd.DataFrame,
    tz: str,
    lat: float,
    long: float,
    datetime_column: str = 'DateTimeStamp'
) -> pd.DataFrame:
    """
    Identify the metabolic day and diurnal period of each observation.

    Args:
        data: Ascending time series with a tz-aware timestamp column
        tz: Timezone name, must match the timestamps
        lat: Latitude (decimal degrees)
        long: Longitude (decimal degrees, negative west)
        datetime_column: Name of the timestamp column

    Returns:
        Copy of the input with ``metab_date``, ``solar_period``,
        ``solar_time`` and ``day_hrs`` appended

    Raises:
        ValueError: If the timestamps are not in the declared timezone
    """
    stamps = data[datetime_column]
    check_timezone(stamps, tz)

    local_dates = stamps.dt.date
    start_day = min(local_dates.dropna()) - timedelta(days=1)
    end_day = max(local_dates.dropna()) + timedelta(days=1)
    events = sun_events(start_day, end_day, tz, lat, long)

    # index of the most recent sun event preceding each observation
    event_ns = _as_utc_ns(events['solar_time'])
    obs_ns = _as_utc_ns(stamps)
    matches = np.searchsorted(event_ns, obs_ns, side='right') - 1

    out = data.drop(columns=[c for c in SOLAR_COLUMNS if c in data.columns]).copy()
    out = out.reset_index(drop=True)
    valid = matches >= 0
    take = np.where(valid, matches, 0)
    for col in SOLAR_COLUMNS:
        values = events[col].iloc[take].reset_index(drop=True)
        out[col] = values.where(valid)

    return out


def decimal_time(
    data: pd.DataFrame,
    datetime_column: str = 'DateTimeStamp'
) -> pd.DataFrame:
    """
    Continuous decimal time counted in metabolic days.

    The integer part counts metabolic days since the first one in the record and
    the fractional part is the time elapsed since that day's sunrise, so the
    coordinate increases uniformly across the whole record and across gaps.

    Args:
        data: Output of :func:`metabolic_days`

    Returns:
        Copy of the input with a ``dec_time`` column
    """
    if 'metab_date' not in data.columns:
        raise ValueError("Data must be processed with metabolic_days first")

    out = data.copy()
    # days are counted from the first metabolic day, missing days leave a gap
    metab_days = pd.to_datetime(out['metab_date'])
    day_index = (metab_days - metab_days.min()).dt.days

    # day starts at sunrise, sunset rows step back by the hours of daylight
    daylight = pd.to_timedelta(out['day_hrs'], unit='h')
    starts = out['solar_time'].where(
        out['solar_period'] == 'sunrise',
        out['solar_time'] - daylight
    )

    elapsed = (out[datetime_column] - starts).dt.total_seconds() / 86400.0
    out['dec_time'] = day_index.to_numpy(dtype=float) + elapsed.to_numpy(dtype=float)

    return out


def _as_utc_ns(stamps: Union[pd.Series, pd.DatetimeIndex]) -> np.ndarray:
    """Nanoseconds since the epoch (UTC) for tz-aware timestamps."""
    index = pd.DatetimeIndex(stamps).tz_convert('UTC')
    return index.as_unit('ns').asi8
