"""
Evaluation of metabolism estimates and the detiding objective function.

Daily metabolism is summarized by the mean and standard deviation of Pg and
Rt, and by the percentage of anomalous days (Pg <= 0 or Rt >= 0). Monthly
correlations between DO, metabolism and tidal change describe how much tidal
signal remains in a series. Observed and detided summaries are combined into
one scalar that the window-width optimizer minimizes.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence
import warnings

import numpy as np
import pandas as pd

from .metabolism import MetabResult


EVAL_METRICS = ('meanPg', 'sdPg', 'anomPg', 'meanRt', 'sdRt', 'anomRt')
MEAN_METRICS = ('meanPg', 'meanRt')
MIN_CORRELATION_PAIRS = 3


@dataclass
class MetabEvaluation:
    """Summary of a metabolism result."""
    meanPg: float
    sdPg: float
    anomPg: float  # Percent of days with Pg <= 0
    meanRt: float
    sdRt: float
    anomRt: float  # Percent of days with Rt >= 0
    n_days: int = 0
    monthly: Optional[pd.DataFrame] = None  # Monthly correlations and anomalies

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in EVAL_METRICS}

    def to_series(self) -> pd.Series:
        return pd.Series(self.to_dict())


def anomaly_percent(values: pd.Series, producing: bool = True) -> float:
    """
    Percent of anomalous daily estimates.

    Production is anomalous when <= 0, respiration when >= 0.
    """
    values = pd.Series(values).dropna()
    if len(values) == 0:
        return np.nan
    bad = values <= 0 if producing else values >= 0
    return 100.0 * bad.sum() / len(values)


def _safe_corr(x: pd.Series, y: pd.Series) -> float:
    """Pearson correlation, missing if too few complete pairs or no variance."""
    pairs = pd.DataFrame({'x': np.asarray(x, dtype=float), 'y': np.asarray(y, dtype=float)}).dropna()
    if len(pairs) < MIN_CORRELATION_PAIRS:
        return np.nan
    if pairs['x'].std() == 0 or pairs['y'].std() == 0:
        return np.nan
    return float(np.corrcoef(pairs['x'], pairs['y'])[0, 1])


def _mean_diff(values: np.ndarray) -> float:
    diffs = np.diff(values)
    if not np.any(np.isfinite(diffs)):
        return np.nan
    return float(np.nanmean(diffs))


def _tidal_change(rawdat: pd.DataFrame, depth_column: str) -> pd.DataFrame:
    """Mean tidal derivative per metabolic day for the whole day, day and night."""
    rows = []
    for date, day in rawdat.groupby('metab_date', sort=True):
        tide = day[depth_column].to_numpy(dtype=float)
        is_day = (day['solar_period'] == 'sunrise').to_numpy()

        rows.append({
            'Date': pd.Timestamp(date),
            'daytot': _mean_diff(tide),
            'sunrise': _mean_diff(tide[is_day]),
            'sunset': _mean_diff(tide[~is_day]),
        })
    out = pd.DataFrame(rows, columns=['Date', 'daytot', 'sunrise', 'sunset'])
    out['Date'] = pd.to_datetime(out['Date']).astype('datetime64[ns]')
    return out


def monthly_evaluation(metab: MetabResult) -> Optional[pd.DataFrame]:
    """
    Monthly correlations of DO with tide and of metabolism with tidal change.

    For each calendar month: the correlation of DO with tidal height
    (``DOcor``), of Pg with the mean tidal change during the day
    (``Pgcor``), of Rt with the mean tidal change during the night
    (``Rtcor``), and the monthly anomaly percentages.

    Returns:
        DataFrame with one row per month, or None without a tidal column
    """
    depth_column = metab.depth_column
    rawdat = metab.rawdat
    if depth_column is None or depth_column not in rawdat.columns:
        warnings.warn('No tidal height column in raw data')
        return None

    months = pd.to_datetime(rawdat['metab_date']).dt.strftime('%m')
    docor = {
        month: _safe_corr(grp[metab.do_column], grp[depth_column])
        for month, grp in rawdat.groupby(months.values, sort=True)
    }

    toeval = metab.dropna().merge(_tidal_change(rawdat, depth_column), on='Date', how='left')
    toeval['month'] = toeval['Date'].dt.strftime('%m')

    rows = []
    for month in sorted(set(docor) | set(toeval['month'])):
        grp = toeval[toeval['month'] == month]
        rows.append({
            'month': month,
            'DOcor': docor.get(month, np.nan),
            'Pgcor': _safe_corr(grp['Pg'], grp['sunrise']),
            'Rtcor': _safe_corr(grp['Rt'], grp['sunset']),
            'anomPgmon': anomaly_percent(grp['Pg'], producing=True),
            'anomRtmon': anomaly_percent(grp['Rt'], producing=False),
        })

    return pd.DataFrame(rows)


def meteval(metab: MetabResult, all: bool = True) -> MetabEvaluation:
    """
    Summarize daily metabolism estimates.

    Args:
        metab: Output of ecometab
        all: Also calculate the monthly tidal correlations

    Returns:
        MetabEvaluation with means, standard deviations and anomaly
        percentages of Pg and Rt over days where both are defined
    """
    toeval = metab.dropna()

    out = MetabEvaluation(
        meanPg=float(toeval['Pg'].mean()),
        sdPg=float(toeval['Pg'].std()),
        anomPg=anomaly_percent(toeval['Pg'], producing=True),
        meanRt=float(toeval['Rt'].mean()),
        sdRt=float(toeval['Rt'].std()),
        anomRt=anomaly_percent(toeval['Rt'], producing=False),
        n_days=len(toeval)
    )

    if all:
        out.monthly = monthly_evaluation(metab)

    return out


def metric_difference(name: str, observed: float, detided: float) -> float:
    """
    Normalized difference between observed and detided values of a metric.

    Mean metrics use the absolute log ratio, which is zero when detiding
    leaves the mean unchanged and grows as the means diverge. A mean that
    changes sign or goes to zero gives infinity.
    Spread and anomaly metrics use the signed relative difference
    ``(detided - observed) / mean(|observed|, |detided|)``, which is
    negative when detiding reduces the metric and zero when both are zero.
    """
    if name in MEAN_METRICS:
        ratio = detided / observed if observed != 0 else np.nan
        if not ratio > 0:
            return np.inf
        return float(abs(np.log(ratio)))

    scale = (abs(observed) + abs(detided)) / 2
    if scale == 0:
        return 0.0
    return float((detided - observed) / scale)


def objfun(
    metab_obs: MetabResult,
    metab_dtd: MetabResult,
    vls: Sequence[str] = EVAL_METRICS,
    weights: Optional[Dict[str, float]] = None
) -> float:
    """
    Objective comparing observed and detided metabolism, lower is better.

    Args:
        metab_obs: Metabolism from observed DO, or its evaluation
        metab_dtd: Metabolism from detided DO, or its evaluation
        vls: Metrics to include, any of ``EVAL_METRICS``
        weights: Optional weight for each metric, default 1

    Returns:
        Weighted sum of :func:`metric_difference` over the selected metrics,
        missing when a metric is undefined and infinite when a mean changes
        sign
    """
    unknown = [v for v in vls if v not in EVAL_METRICS]
    if unknown:
        raise ValueError(f"Unknown evaluation metrics: {', '.join(unknown)}")

    obs = metab_obs if isinstance(metab_obs, MetabEvaluation) else meteval(metab_obs, all=False)
    dtd = metab_dtd if isinstance(metab_dtd, MetabEvaluation) else meteval(metab_dtd, all=False)
    weights = weights or {}

    total = 0.0
    with np.errstate(divide='ignore', invalid='ignore'):
        for name in vls:
            o, d = getattr(obs, name), getattr(dtd, name)
            if not (np.isfinite(o) and np.isfinite(d)):
                return np.nan
            total += weights.get(name, 1.0) * metric_difference(name, o, d)

    return total
