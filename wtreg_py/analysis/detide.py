import time
import warnings
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm
from tqdm import tqdm

from ..core.data_structures import StationData, as_station_data
from ..core.preprocessing import hour_of_day
from ..core.solar import metabolic_days, decimal_time
from ..core.weights import (
    DEFAULT_WINDOWS,
    MIN_POSITIVE_WEIGHTS,
    kernel_weights,
    resolve_windows
)


ProgressCallback = Callable[[int, int, float], None]


@dataclass
class LocalFit:
    """Container for the local regression at one observation."""
    DO_prd: float  # Predicted DO at the observed tide
    DO_nrm: float  # Detided DO at the mean tide
    beta: float  # Tide coefficient of the observed-tide model
    n_positive: int  # Observations with positive weight


def _design_matrix(dec_time: np.ndarray, tide: np.ndarray, sinusoid: bool) -> np.ndarray:
    """Columns of intercept, decimal time, tide and optional daily harmonics."""
    dec_time = np.atleast_1d(np.asarray(dec_time, dtype=float))
    tide = np.atleast_1d(np.asarray(tide, dtype=float))
    cols = [np.ones_like(dec_time), dec_time, tide]
    if sinusoid:
        cols.append(np.sin(2 * np.pi * dec_time))
        cols.append(np.cos(2 * np.pi * dec_time))
    return np.column_stack(cols)


def fit_local_model(
    row: int,
    covariates: np.ndarray,
    do_values: np.ndarray,
    windows,
    mean_tide: float,
    sinusoid: bool = False,
    slice_data: bool = True,
    min_positive: int = MIN_POSITIVE_WEIGHTS
) -> LocalFit:
    """
    Weighted regression of DO on time and tide centered on one observation.

    Two references are weighted, one at the observed tide and one at the mean
    tide. Each model predicts DO at its own reference, giving the predicted
    and the detided (normalized) value.

    Args:
        row: Position of the observation
        covariates: Decimal time, hour and tide for all observations
        do_values: Dissolved oxygen for all observations
        windows: Numeric half-window widths
        mean_tide: Mean tidal height of the record
        sinusoid: Add sin/cos terms of decimal time with a period of one day
        slice_data: Limit candidates to the maximum window
        min_positive: Minimum count of positive weights

    Returns:
        LocalFit, with missing predictions if the observation's DO or all
        DO values within the window are missing
    """
    if np.isnan(do_values[row]):
        return LocalFit(np.nan, np.nan, np.nan, 0)

    reference = np.repeat(covariates[[row]], 2, axis=0)
    reference[1, 2] = mean_tide

    wts = kernel_weights(
        reference, covariates, windows,
        slice_data=slice_data, min_positive=min_positive
    )
    n_positive = int(wts.n_positive[0])

    preds = []
    beta = np.nan
    for j in range(2):
        keep = wts.weights[:, j] > 0
        sel = wts.rows[keep]
        y = do_values[sel]
        if np.all(np.isnan(y)):
            return LocalFit(np.nan, np.nan, np.nan, n_positive)

        # rescale to mean weight of one
        w = wts.weights[keep, j]
        w = w / np.mean(w)

        X = _design_matrix(covariates[sel, 0], covariates[sel, 2], sinusoid)
        model = sm.WLS(y, X, weights=w, missing='drop').fit()

        new_x = _design_matrix(reference[j, 0], reference[j, 2], sinusoid)
        preds.append(float(model.predict(new_x)[0]))
        if j == 0:
            beta = float(model.params[2])

    return LocalFit(preds[0], preds[1], beta, n_positive)


def _detide_rows(
    rows: np.ndarray,
    covariates: np.ndarray,
    do_values: np.ndarray,
    windows,
    mean_tide: float,
    sinusoid: bool,
    slice_data: bool,
    min_positive: int
) -> np.ndarray:
    """
    Local fits for a block of rows.

    Module level so it can be sent to worker processes. Returns an array of
    shape (len(rows), 3) with predicted DO, detided DO and tide coefficient.
    """
    out = np.empty((len(rows), 3))
    for i, row in enumerate(rows):
        fit = fit_local_model(
            row, covariates, do_values, windows, mean_tide,
            sinusoid=sinusoid, slice_data=slice_data, min_positive=min_positive
        )
        out[i] = (fit.DO_prd, fit.DO_nrm, fit.beta)
    return out


def prepare_weighting_variables(
    data: pd.DataFrame,
    tz: str,
    lat: float,
    long: float,
    datetime_column: str = 'DateTimeStamp'
) -> pd.DataFrame:
    """Add metabolic day, decimal time and hour columns used for weighting."""
    out = metabolic_days(data, tz=tz, lat=lat, long=long, datetime_column=datetime_column)
    out = decimal_time(out, datetime_column=datetime_column)
    out['hour'] = hour_of_day(out[datetime_column])
    return out


def wtreg(
    data: Union[pd.DataFrame, StationData],
    tz: str,
    lat: float,
    long: float,
    do_column: str = 'DO_obs',
    depth_column: str = 'Tide',
    windows: Sequence = DEFAULT_WINDOWS,
    sinusoid: bool = False,
    n_jobs: int = 1,
    chunk_size: int = 250,
    slice_data: bool = True,
    min_positive: int = MIN_POSITIVE_WEIGHTS,
    progress_bar: bool = False,
    progress_callback: Optional[ProgressCallback] = None,
    datetime_column: str = 'DateTimeStamp'
) -> pd.DataFrame:
    """
    Weighted regression to reduce the effect of tidal advection on DO.

    For every observation a linear model of DO against decimal time and tidal
    height is fit with tri-cube weights on decimal time, hour of the day and
    tidal height. The model predicts DO at the observed tide (``DO_prd``) and
    at the mean tide of the record (``DO_nrm``, the detided series).

    Args:
        data: Time series with tz-aware timestamps, DO and tidal height
        tz: Timezone name of the site, must match the timestamps
        lat: Latitude (decimal degrees)
        long: Longitude (decimal degrees, negative west)
        do_column: Name of the dissolved oxygen column
        depth_column: Name of the tidal height column, renamed ``Tide``
        windows: Half-window widths for days, hours and tidal height.
            ``None`` or ``'auto'`` for the tide is one half the tidal range.
        sinusoid: Include sin/cos terms of decimal time in the local model
        n_jobs: Number of worker processes (-1 for all CPUs)
        chunk_size: Rows per block of work
        slice_data: Subset candidates by the time window before weighting
        min_positive: Minimum number of positive weights per observation
        progress_bar: Show a tqdm progress bar
        progress_callback: Called as ``callback(done, total, elapsed_seconds)``
            after each block completes
        datetime_column: Name of the timestamp column

    Returns:
        Copy of the input with ``metab_date``, ``solar_period``,
        ``solar_time``, ``day_hrs``, ``dec_time``, ``hour``, ``DO_prd``,
        ``DO_nrm`` and ``beta`` columns

    Raises:
        ValueError: On missing columns, missing tidal heights, or invalid
            timestamps
    """
    station = as_station_data(data, datetime_column=datetime_column)
    station.check_required_variables([datetime_column, do_column, depth_column])

    n_missing = int(station.data[depth_column].isna().sum())
    if n_missing > 0:
        raise ValueError(f"Remove {n_missing} missing observations in {depth_column}")

    station.check_timestamps(tz)

    df = station.data.rename(columns={depth_column: 'Tide'})
    mean_tide = float(df['Tide'].mean())

    df = prepare_weighting_variables(df, tz, lat, long, datetime_column=datetime_column)

    covariates = df[['dec_time', 'hour', 'Tide']].to_numpy(dtype=float)
    do_values = pd.to_numeric(df[do_column], errors='coerce').to_numpy(dtype=float)
    resolved = resolve_windows(windows, covariates[:, 2])

    n_rows = len(df)
    blocks = [np.arange(i, min(i + chunk_size, n_rows)) for i in range(0, n_rows, chunk_size)]
    args = (covariates, do_values, resolved, mean_tide, sinusoid, slice_data, min_positive)

    if n_jobs == -1:
        import multiprocessing
        n_jobs = multiprocessing.cpu_count()

    results: Dict[int, np.ndarray] = {}
    start = time.time()
    done = 0
    pbar = tqdm(total=n_rows, desc="Detiding", disable=not progress_bar)

    def _report(k: int, block_out: np.ndarray):
        nonlocal done
        results[k] = block_out
        done += len(blocks[k])
        pbar.update(len(blocks[k]))
        if progress_callback is not None:
            progress_callback(done, n_rows, time.time() - start)

    try:
        if n_jobs == 1:
            for k, rows in enumerate(blocks):
                _report(k, _detide_rows(rows, *args))
        else:
            with ProcessPoolExecutor(max_workers=n_jobs) as executor:
                futures = {
                    executor.submit(_detide_rows, rows, *args): k
                    for k, rows in enumerate(blocks)
                }
                for future in as_completed(futures):
                    _report(futures[future], future.result())
    finally:
        pbar.close()

    # reassemble in original row order
    fits = np.vstack([results[k] for k in range(len(blocks))]) if blocks else np.empty((0, 3))

    n_failed = int(np.sum(np.isnan(fits[:, 1]) & ~np.isnan(do_values)))
    if n_failed:
        warnings.warn(f"{n_failed} observations with DO could not be detided")

    out = df.rename(columns={'Tide': depth_column})
    out['DO_prd'] = fits[:, 0]
    out['DO_nrm'] = fits[:, 1]
    out['beta'] = fits[:, 2]

    return out
