import numpy as np
from scipy.optimize import minimize
from typing import Dict, Tuple, Callable, Optional, List, Sequence, Union
from dataclasses import dataclass, field
import warnings

import pandas as pd

from ..core.data_structures import StationData
from ..core.weights import DEFAULT_WINDOWS, resolve_windows
from .detide import wtreg
from .evaluation import EVAL_METRICS, MetabEvaluation, meteval, objfun
from .metabolism import MetabResult, ecometab


WINDOW_NAMES = ['dec_time', 'hour', 'Tide']
DEFAULT_LOWER = (0.1, 0.1, 0.1)
DEFAULT_UPPER = (12.0, 12.0, 1.0)
DEFAULT_PENALTY = 1e6

TrialCallback = Callable[[Tuple[float, float, float], float], None]


@dataclass
class StrategyAttempt:
    """Outcome of one minimization method."""
    method: str
    success: bool  # Converged according to the method
    windows: np.ndarray  # Best window widths reported by the method
    value: float  # Objective at ``windows``
    nfev: int = 0
    message: str = ''
    error: Optional[str] = None  # Set if the method raised


@dataclass
class OptimizationStrategy:
    """
    One bounded minimization method of ``scipy.optimize.minimize``.

    Args:
        method: Method name accepting bounds, e.g. 'L-BFGS-B', 'Nelder-Mead'
        options: Passed as ``options`` to ``minimize``
    """
    method: str
    options: Dict = field(default_factory=dict)

    def attempt(
        self,
        objective: Callable,
        x0: np.ndarray,
        bounds: List[Tuple[float, float]]
    ) -> StrategyAttempt:
        """Minimize ``objective`` from ``x0``, never raising for method failures."""
        try:
            result = minimize(
                objective,
                x0,
                method=self.method,
                bounds=bounds,
                options=self.options
            )
        except Exception as e:
            warnings.warn(f"Optimization with {self.method} failed: {e}")
            return StrategyAttempt(
                method=self.method,
                success=False,
                windows=np.asarray(x0, dtype=float),
                value=np.inf,
                message=str(e),
                error=str(e)
            )

        return StrategyAttempt(
            method=self.method,
            success=bool(result.success),
            windows=np.asarray(result.x, dtype=float),
            value=float(result.fun),
            nfev=int(result.get('nfev', 0)),
            message=str(result.message)
        )


DEFAULT_STRATEGIES = (
    OptimizationStrategy('L-BFGS-B', {'maxiter': 100}),
    OptimizationStrategy('Nelder-Mead', {'maxiter': 200, 'xatol': 1e-2, 'fatol': 1e-4}),
    OptimizationStrategy('Powell', {'maxiter': 50, 'xtol': 1e-2}),
)


@dataclass
class WindowOptResult:
    """Container for window width optimization results."""
    windows: Tuple[float, float, float]  # Best half-window widths
    value: float  # Objective at the best widths
    converged: bool
    method: Optional[str]  # Method that produced the best widths
    attempts: List[StrategyAttempt]
    n_evaluations: int
    interrupted: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def parameters(self) -> Dict[str, float]:
        return dict(zip(WINDOW_NAMES, self.windows))


class _GuardedObjective:
    """
    Wrap an objective so every call returns a finite value.

    Errors and non-finite values are replaced by the penalty. The best
    trial seen so far is kept for reporting after an interruption.
    """

    def __init__(
        self,
        func: Callable,
        penalty: float = DEFAULT_PENALTY,
        callback: Optional[TrialCallback] = None,
        verbose: bool = False
    ):
        self.func = func
        self.penalty = penalty
        self.callback = callback
        self.verbose = verbose
        self.n_calls = 0
        self.best_x: Optional[np.ndarray] = None
        self.best_value = np.inf

    def __call__(self, x: np.ndarray) -> float:
        x = np.asarray(x, dtype=float)
        self.n_calls += 1
        try:
            value = float(self.func(x))
        except Exception as e:
            warnings.warn(f"Trial {np.round(x, 4).tolist()} failed: {e}")
            value = np.nan

        if not np.isfinite(value):
            warnings.warn(f"Trial {np.round(x, 4).tolist()} gave a non-finite objective, using penalty")
            value = self.penalty

        if value < self.best_value:
            self.best_value = value
            self.best_x = x.copy()

        if self.verbose:
            print(f"Trial {self.n_calls}: windows {np.round(x, 4).tolist()}, objective {value:.6g}")
        if self.callback is not None:
            self.callback(tuple(float(v) for v in x), value)

        return value


def make_window_objective(
    data: Union[pd.DataFrame, StationData],
    tz: str,
    lat: float,
    long: float,
    metab_obs: Union[MetabResult, MetabEvaluation],
    bounds: List[Tuple[float, float]],
    vls: Sequence[str] = EVAL_METRICS,
    weights: Optional[Dict[str, float]] = None,
    depth_column: str = 'Tide',
    penalty: float = DEFAULT_PENALTY,
    wtreg_kwargs: Optional[Dict] = None,
    ecometab_kwargs: Optional[Dict] = None,
    callback: Optional[TrialCallback] = None,
    verbose: bool = False
) -> Callable:
    """
    Create the objective minimized over half-window widths.

    Each call detides the series with the trial widths, estimates metabolism
    from the detided DO and compares it with the observed metabolism.

    Args:
        data: Input series for the detiding
        tz, lat, long: Site metadata
        metab_obs: Metabolism of the observed DO or its evaluation, calculated once
        bounds: Window bounds, trial widths are clipped to them
        vls: Evaluation metrics in the objective
        weights: Optional weights of the metrics
        depth_column: Tidal height column
        penalty: Value returned for failed or non-finite trials
        wtreg_kwargs: Extra arguments for the detiding
        ecometab_kwargs: Extra arguments for the metabolism
        callback: Called as ``callback(windows, value)`` after each trial
        verbose: Print each trial

    Returns:
        Objective function of a length three array
    """
    wtreg_kwargs = wtreg_kwargs or {}
    ecometab_kwargs = ecometab_kwargs or {}
    lower = np.array([b[0] for b in bounds], dtype=float)
    upper = np.array([b[1] for b in bounds], dtype=float)

    def trial(x: np.ndarray) -> float:
        windows = tuple(float(v) for v in np.clip(x, lower, upper))
        dtd = wtreg(
            data, tz, lat, long,
            depth_column=depth_column,
            windows=windows,
            **wtreg_kwargs
        )
        metab_dtd = ecometab(
            dtd, tz, lat, long,
            do_column='DO_nrm',
            depth_column=depth_column,
            **ecometab_kwargs
        )
        return objfun(metab_obs, metab_dtd, vls=vls, weights=weights)

    return _GuardedObjective(trial, penalty=penalty, callback=callback, verbose=verbose)


def window_bound_warnings(
    windows: Sequence[float],
    bounds: List[Tuple[float, float]],
    value: float,
    penalty: float = DEFAULT_PENALTY
) -> List[str]:
    """
    Check optimized widths for values at a bound or a penalized objective.

    Returns:
        List of warning messages, empty if nothing suspicious
    """
    warnings_list = []

    for value_i, (lower, upper), name in zip(windows, bounds, WINDOW_NAMES):
        if value_i <= lower * 1.001:  # Within 0.1% of lower bound
            warnings_list.append(f"{name} window at lower bound: {value_i:.3f}")
        elif value_i >= upper * 0.999:  # Within 0.1% of upper bound
            warnings_list.append(f"{name} window at upper bound: {value_i:.3f}")

    if value >= penalty:
        warnings_list.append(f"Objective at penalty value: {value:.2e}")

    return warnings_list


def optimize_windows(
    objective: Callable,
    x0: Sequence[float],
    bounds: List[Tuple[float, float]],
    strategies: Sequence[OptimizationStrategy] = DEFAULT_STRATEGIES,
    penalty: float = DEFAULT_PENALTY,
    verbose: bool = False
) -> WindowOptResult:
    """
    Minimize an objective by trying strategies in order.

    The first strategy that converges wins. If none converge the best
    attempt by objective value is returned, flagged as not converged. A
    keyboard interrupt stops the search and returns the best trial so far.

    Args:
        objective: Function of the window widths
        x0: Starting widths, clipped to the bounds
        bounds: (lower, upper) per width
        strategies: Methods tried in order
        penalty: Value substituted for failed or non-finite trials
        verbose: Print the outcome of each strategy

    Returns:
        WindowOptResult
    """
    if not strategies:
        raise ValueError("At least one optimization strategy is required")

    if not isinstance(objective, _GuardedObjective):
        objective = _GuardedObjective(objective, penalty=penalty)

    lower = np.array([b[0] for b in bounds], dtype=float)
    upper = np.array([b[1] for b in bounds], dtype=float)
    x0 = np.clip(np.asarray(x0, dtype=float), lower, upper)

    attempts: List[StrategyAttempt] = []
    winner: Optional[StrategyAttempt] = None
    interrupted = False

    try:
        for strategy in strategies:
            attempt = strategy.attempt(objective, x0, list(bounds))
            attempts.append(attempt)
            if verbose:
                print(f"{attempt.method}: success={attempt.success}, "
                      f"objective={attempt.value:.6g}, {attempt.message}")
            if attempt.success and np.isfinite(attempt.value):
                winner = attempt
                break
    except KeyboardInterrupt:
        interrupted = True
        warnings.warn("Optimization interrupted, returning the best trial so far")

    if winner is not None:
        windows, value, method, converged = winner.windows, winner.value, winner.method, True
    elif attempts and not interrupted:
        best = min(attempts, key=lambda a: a.value)
        windows, value, method, converged = best.windows, best.value, best.method, False
        warnings.warn("No optimization method converged, returning the best attempt")
    else:
        windows, value, method, converged = objective.best_x, objective.best_value, None, False
        if windows is None:
            windows = x0

    # a method may report a worse point than one it evaluated
    if not converged and objective.best_x is not None and objective.best_value < value:
        windows, value = objective.best_x, objective.best_value

    windows = tuple(float(v) for v in np.clip(windows, lower, upper))

    return WindowOptResult(
        windows=windows,
        value=float(value),
        converged=converged,
        method=method,
        attempts=attempts,
        n_evaluations=objective.n_calls,
        interrupted=interrupted,
        warnings=window_bound_warnings(windows, list(bounds), value, penalty)
    )


def winopt(
    data: Union[pd.DataFrame, StationData],
    tz: str,
    lat: float,
    long: float,
    windows: Sequence = DEFAULT_WINDOWS,
    lower: Sequence[float] = DEFAULT_LOWER,
    upper: Sequence[float] = DEFAULT_UPPER,
    vls: Sequence[str] = EVAL_METRICS,
    weights: Optional[Dict[str, float]] = None,
    strategies: Sequence[OptimizationStrategy] = DEFAULT_STRATEGIES,
    penalty: float = DEFAULT_PENALTY,
    do_column: str = 'DO_obs',
    depth_column: str = 'Tide',
    wtreg_kwargs: Optional[Dict] = None,
    ecometab_kwargs: Optional[Dict] = None,
    verbose: bool = False,
    callback: Optional[TrialCallback] = None
) -> WindowOptResult:
    """
    Optimize the half-window widths used to detide a DO series.

    Metabolism from the observed DO is estimated once. Every trial detides
    the series with candidate widths, estimates metabolism from the detided
    DO and compares both with :func:`objfun`.

    Args:
        data: Water quality and weather time series
        tz: Timezone name of the site
        lat: Latitude (decimal degrees)
        long: Longitude (decimal degrees, negative west)
        windows: Starting widths for days, hours and tide. ``None`` or
            ``'auto'`` for the tide starts at half the tidal range.
        lower: Lower bounds of the widths
        upper: Upper bounds of the widths
        vls: Evaluation metrics in the objective
        weights: Optional weight of each metric
        strategies: Minimization methods tried in order
        penalty: Objective value of failed trials
        do_column: Observed DO column
        depth_column: Tidal height column
        wtreg_kwargs: Extra arguments for the detiding, e.g. ``n_jobs``
        ecometab_kwargs: Extra arguments for the metabolism, e.g. ``gasex``
        verbose: Print progress of the search
        callback: Called as ``callback(windows, value)`` after each trial

    Returns:
        WindowOptResult with the best widths and convergence diagnostics

    Raises:
        ValueError: If bounds are invalid or metabolism of the observed DO
            cannot be summarized
    """
    if len(lower) != 3 or len(upper) != 3:
        raise ValueError("Three lower and upper bounds are required (days, hours, tide)")
    bounds = [(float(lo), float(hi)) for lo, hi in zip(lower, upper)]
    for (lo, hi), name in zip(bounds, WINDOW_NAMES):
        if not 0 < lo < hi:
            raise ValueError(f"Bounds for {name} must satisfy 0 < lower < upper, got ({lo}, {hi})")

    ecometab_kwargs = ecometab_kwargs or {}
    metab_obs = ecometab(
        data, tz, lat, long,
        do_column=do_column,
        depth_column=depth_column,
        **ecometab_kwargs
    )
    obs_eval = meteval(metab_obs, all=False)
    if not all(np.isfinite(getattr(obs_eval, name)) for name in vls):
        raise ValueError("Metabolism of the observed DO could not be summarized")

    frame = data.data if isinstance(data, StationData) else data
    x0 = resolve_windows(windows, frame[depth_column])

    objective = make_window_objective(
        data, tz, lat, long,
        metab_obs=obs_eval,
        bounds=bounds,
        vls=vls,
        weights=weights,
        depth_column=depth_column,
        penalty=penalty,
        wtreg_kwargs=dict(wtreg_kwargs or {}, do_column=do_column),
        ecometab_kwargs=ecometab_kwargs,
        callback=callback,
        verbose=verbose
    )

    result = optimize_windows(
        objective, x0, bounds,
        strategies=strategies,
        penalty=penalty,
        verbose=verbose
    )

    for msg in result.warnings:
        warnings.warn(msg)

    return result
