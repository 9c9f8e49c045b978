"""
Tri-cube kernel weights for weighted regression of dissolved oxygen.

Weights for a reference observation are the product of tri-cube weights on
three covariates: decimal time (days), hour of the day (circular, 24 hours)
and tidal height. If fewer than a minimum number of observations receive a
positive weight, all three half-window widths are widened by 10% and the
weights are recalculated until the minimum is met.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd


DEFAULT_WEIGHT_COLUMNS = ('dec_time', 'hour', 'Tide')
DEFAULT_WINDOWS = (4, 12, None)
MIN_POSITIVE_WEIGHTS = 100
WINDOW_EXPANSION = 1.1
SLICE_FACTOR = 5
HOURS_PER_DAY = 24.0


@dataclass
class KernelWeights:
    """Container for the weights of one or more reference observations."""
    rows: np.ndarray  # Candidate row positions the weights refer to
    weights: np.ndarray  # Final weights, shape (len(rows), n_references)
    component_weights: Tuple[np.ndarray, np.ndarray, np.ndarray]  # Per-covariate weights
    windows: Tuple[float, float, float]  # Half-window widths after widening
    n_expansions: int  # Number of times the windows were widened

    @property
    def n_positive(self) -> np.ndarray:
        """Count of strictly positive weights for each reference."""
        return np.sum(self.weights > 0, axis=0)

    def dense(self, n_rows: int) -> np.ndarray:
        """Weights aligned to all ``n_rows`` candidates, zero outside the slice."""
        out = np.zeros((n_rows, self.weights.shape[1]))
        out[self.rows, :] = self.weights
        return out

    def sparse(self) -> List[pd.Series]:
        """Positive weights only, one Series per reference indexed by row position."""
        out = []
        for j in range(self.weights.shape[1]):
            keep = self.weights[:, j] > 0
            out.append(pd.Series(self.weights[keep, j], index=self.rows[keep]))
        return out


def tricube(distance: Union[float, np.ndarray], half_width: float) -> np.ndarray:
    """
    Tri-cube weighting function.

    weight = (1 - (d / h)^3)^3 for d < h, otherwise 0

    Args:
        distance: Absolute distance(s) from the reference
        half_width: Half-window width h

    Returns:
        Weights in [0, 1], missing distances get zero weight
    """
    distance = np.asarray(distance, dtype=float)
    inside = distance < half_width
    with np.errstate(invalid='ignore'):
        wts = (1 - (distance / half_width) ** 3) ** 3
    return np.where(inside, wts, 0.0)


def circular_distance(
    values: Union[float, np.ndarray],
    reference: Union[float, np.ndarray],
    period: float = HOURS_PER_DAY
) -> np.ndarray:
    """
    Distance on a repeating scale, e.g. hour of the day.

    The distance is the smallest of the direct distance and the two
    wrap-around distances, so hours 23 and 1 are 2 hours apart.
    """
    values = np.asarray(values, dtype=float)
    reference = np.asarray(reference, dtype=float)
    direct = np.abs(values - reference)
    return np.minimum(
        direct,
        np.minimum(np.abs(reference + period - values), np.abs(values + period - reference))
    )


def resolve_windows(
    windows: Sequence[Optional[Union[float, str]]],
    tide: Union[np.ndarray, pd.Series]
) -> Tuple[float, float, float]:
    """
    Numeric half-window widths, resolving an automatic tidal window.

    Args:
        windows: Half-window widths for decimal time (days), hour (hours)
            and tide height. ``None`` or ``'auto'`` for the tide sets the
            width to one half the tidal range.
        tide: Tidal heights used for the automatic width

    Raises:
        ValueError: If the widths are not three positive numbers
    """
    if len(windows) != 3:
        raise ValueError("Three half-window widths are required (days, hours, tide)")

    win_time, win_hour, win_tide = windows
    if win_tide is None or (isinstance(win_tide, str) and win_tide == 'auto'):
        tide = np.asarray(tide, dtype=float)
        win_tide = (np.nanmax(tide) - np.nanmin(tide)) / 2

    out = tuple(float(w) for w in (win_time, win_hour, win_tide))
    for name, value in zip(('time', 'hour', 'tide'), out):
        if not np.isfinite(value) or value <= 0:
            raise ValueError(f"Half-window width for {name} must be positive, got {value}")

    return out


def kernel_weights(
    reference: np.ndarray,
    covariates: np.ndarray,
    windows: Tuple[float, float, float],
    slice_data: bool = True,
    min_positive: int = MIN_POSITIVE_WEIGHTS
) -> KernelWeights:
    """
    Array version of the weight calculation used by the detiding loop.

    Args:
        reference: Reference covariates, shape (n_references, 3), ordered as
            decimal time, hour, tide. All references share one decimal time.
        covariates: Candidate covariates, shape (n_rows, 3)
        windows: Numeric half-window widths
        slice_data: Limit candidates to within five time half-widths of the
            reference before weighting
        min_positive: Minimum count of positive weights for each reference,
            capped at the number of candidates with complete covariates

    Returns:
        KernelWeights for the candidates inside the final slice
    """
    reference = np.atleast_2d(np.asarray(reference, dtype=float))
    covariates = np.asarray(covariates, dtype=float)
    n_rows = covariates.shape[0]

    available = int(np.sum(np.all(np.isfinite(covariates), axis=1)))
    needed = min(min_positive, available)
    if needed == 0:
        raise ValueError("No candidate observations with complete weighting variables")

    win_time, win_hour, win_tide = windows
    ref_time = reference[0, 0]
    dec_time = covariates[:, 0]
    n_expansions = 0

    while True:
        if slice_data:
            rows = np.flatnonzero(
                (dec_time > ref_time - win_time * SLICE_FACTOR) &
                (dec_time < ref_time + win_time * SLICE_FACTOR)
            )
        else:
            rows = np.arange(n_rows)
        subset = covariates[rows]

        wts_time = tricube(np.abs(subset[:, [0]] - reference[:, 0]), win_time)
        wts_hour = tricube(circular_distance(subset[:, [1]], reference[:, 1]), win_hour)
        wts_tide = tricube(np.abs(subset[:, [2]] - reference[:, 2]), win_tide)
        final = wts_time * wts_hour * wts_tide

        if np.all(np.sum(final > 0, axis=0) >= needed):
            break

        win_time *= WINDOW_EXPANSION
        win_hour *= WINDOW_EXPANSION
        win_tide *= WINDOW_EXPANSION
        n_expansions += 1

    return KernelWeights(
        rows=rows,
        weights=final,
        component_weights=(wts_time, wts_hour, wts_tide),
        windows=(win_time, win_hour, win_tide),
        n_expansions=n_expansions
    )


def calculate_weights(
    reference: Union[pd.DataFrame, pd.Series],
    data: pd.DataFrame,
    windows: Sequence[Optional[Union[float, str]]] = DEFAULT_WINDOWS,
    weight_columns: Sequence[str] = DEFAULT_WEIGHT_COLUMNS,
    slice_data: bool = True,
    sparse: bool = False,
    return_all: bool = False,
    min_positive: int = MIN_POSITIVE_WEIGHTS,
    datetime_column: str = 'DateTimeStamp'
) -> Union[np.ndarray, List[pd.Series], pd.DataFrame]:
    """
    Weights used during weighted regression for reference observation(s).

    Args:
        reference: One or more rows of ``data`` at the center of the window.
            Several rows may differ only in tide height, e.g. the observed
            and the mean tide.
        data: Candidate observations containing the weighting variables
        windows: Half-window widths for the weighting variables in order.
            ``None`` or ``'auto'`` for the third sets the width to one half
            its range.
        weight_columns: Names of the decimal time, hour and tide columns
        slice_data: Subset ``data`` to the maximum window before weighting
        sparse: Return only the positive weights, one Series per reference
            indexed by row position in ``data``
        return_all: Return the per-variable weights and their product as a
            DataFrame (single reference only)
        min_positive: Minimum number of positive weights
        datetime_column: Timestamp column copied into the ``return_all`` output

    Returns:
        Dense array of shape (len(data), n_references) by default, otherwise
        as selected by ``sparse`` or ``return_all``
    """
    weight_columns = list(weight_columns)
    missing = [col for col in weight_columns if col not in data.columns]
    if missing:
        raise ValueError(f"Weighting variables must be named in data: {', '.join(missing)}")

    if isinstance(reference, pd.Series):
        reference = reference.to_frame().T

    covariates = data[weight_columns].to_numpy(dtype=float)
    ref_values = reference[weight_columns].to_numpy(dtype=float)
    if np.unique(ref_values[:, 0]).size > 1:
        raise ValueError("Reference observations must share one decimal time")

    resolved = resolve_windows(windows, covariates[:, 2])
    result = kernel_weights(
        ref_values, covariates, resolved,
        slice_data=slice_data, min_positive=min_positive
    )

    if sparse:
        return result.sparse()

    n_rows = len(data)
    if return_all:
        if ref_values.shape[0] != 1:
            raise ValueError("return_all requires a single reference observation")
        out = pd.DataFrame(index=range(n_rows))
        if datetime_column in data.columns:
            out[datetime_column] = data[datetime_column].reset_index(drop=True)
        for name, wts in zip(weight_columns, result.component_weights):
            full = np.zeros(n_rows)
            full[result.rows] = wts[:, 0]
            out[name] = full
        out['final'] = result.dense(n_rows)[:, 0]
        return out

    return result.dense(n_rows)
