from .detide import wtreg, fit_local_model, LocalFit
from .metabolism import ecometab, MetabResult, convert_metab_units, MMOL_TO_GRAMS
from .evaluation import meteval, MetabEvaluation, objfun, EVAL_METRICS
from .optimization import (
    OptimizationStrategy,
    StrategyAttempt,
    WindowOptResult,
    DEFAULT_STRATEGIES,
    make_window_objective,
    optimize_windows,
    winopt
)
from .aggregate import aggregate_metab, smoother
from .correlation import sun_altitude, evalcor

__all__ = [
    'wtreg',
    'fit_local_model',
    'LocalFit',
    'ecometab',
    'MetabResult',
    'convert_metab_units',
    'MMOL_TO_GRAMS',
    'meteval',
    'MetabEvaluation',
    'objfun',
    'EVAL_METRICS',
    # Window optimization
    'OptimizationStrategy',
    'StrategyAttempt',
    'WindowOptResult',
    'DEFAULT_STRATEGIES',
    'make_window_objective',
    'optimize_windows',
    'winopt',
    # Aggregation and diagnostics
    'aggregate_metab',
    'smoother',
    'sun_altitude',
    'evalcor'
]
