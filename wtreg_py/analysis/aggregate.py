"""
Aggregation of daily metabolism estimates.

Daily Pg, Rt and NEM are averaged by calendar period with t-based confidence
limits, or smoothed with a centered moving average.
"""

from typing import Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

from .metabolism import MetabResult


AGGREGATE_ESTIMATES = ('Pg', 'Rt', 'NEM')

# pandas period for each aggregation period, weeks end on Sunday
AGGREGATE_PERIODS = {
    'days': 'D',
    'weeks': 'W-SUN',
    'months': 'M',
    'quarters': 'Q',
    'years': 'Y',
}


def smoother(values: Union[pd.Series, np.ndarray], window: int = 5) -> pd.Series:
    """
    Centered moving average.

    Positions without a full window, or with a missing value inside the
    window, are missing.
    """
    if int(window) != window or window < 1:
        raise ValueError(f"Smoothing window must be a positive integer, got {window}")
    values = pd.Series(values, dtype=float)
    return values.rolling(int(window), center=True, min_periods=int(window)).mean()


def _confidence_limits(values: pd.Series, alpha: float):
    values = values.dropna()
    n = len(values)
    mean = values.mean() if n else np.nan
    if n < 2:
        return mean, np.nan, np.nan
    half = stats.t.ppf(1 - alpha / 2, n - 1) * values.std() / np.sqrt(n)
    return mean, mean - half, mean + half


def aggregate_metab(
    metab: MetabResult,
    by: Union[str, int] = 'weeks',
    na_rm: bool = False,
    alpha: float = 0.05,
    estimates: Sequence[str] = AGGREGATE_ESTIMATES
) -> pd.DataFrame:
    """
    Aggregate daily metabolism by period or with a moving window.

    Args:
        metab: Output of ecometab
        by: 'days', 'weeks', 'months', 'quarters' or 'years', or an integer
            number of days for a centered moving average
        na_rm: Ignore missing days within a period. Otherwise a period with
            a missing day is missing.
        alpha: Confidence level of the limits is ``1 - alpha``
        estimates: Columns of the daily estimates to aggregate

    Returns:
        Long format DataFrame with Date, Estimate, val, lower and upper.
        Limits are missing for a moving average.
    """
    daily = metab.data
    missing = [col for col in estimates if col not in daily.columns]
    if missing:
        raise ValueError(f"The following columns are missing from the data: {', '.join(missing)}")

    dates = pd.to_datetime(daily['Date'])

    if not isinstance(by, str):
        frames = []
        for est in estimates:
            frames.append(pd.DataFrame({
                'Date': dates.values,
                'Estimate': est,
                'val': smoother(daily[est].to_numpy(dtype=float), window=by).values,
                'lower': np.nan,
                'upper': np.nan,
            }))
        return pd.concat(frames, ignore_index=True)

    if by not in AGGREGATE_PERIODS:
        raise ValueError(f"by must be one of {list(AGGREGATE_PERIODS)} or an integer, got {by}")
    if not 0 < alpha < 1:
        raise ValueError(f"alpha must be between 0 and 1, got {alpha}")

    periods = dates.dt.to_period(AGGREGATE_PERIODS[by]).dt.start_time

    rows = []
    for est in estimates:
        for start, vals in daily[est].astype(float).groupby(periods.values, sort=True):
            if not na_rm and vals.isna().any():
                val, lower, upper = np.nan, np.nan, np.nan
            else:
                val, lower, upper = _confidence_limits(vals, alpha)
            rows.append({
                'Date': pd.Timestamp(start),
                'Estimate': est,
                'val': val,
                'lower': lower,
                'upper': upper,
            })

    return pd.DataFrame(rows, columns=['Date', 'Estimate', 'val', 'lower', 'upper'])
