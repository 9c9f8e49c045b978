"""
wtreg_py: Detiding dissolved oxygen time series and estimating ecosystem metabolism.

Weighted regression removes the tidal advection signal from estuarine
dissolved oxygen records, and the Odum open-water method estimates daily
gross production, respiration and net ecosystem metabolism.
"""

__version__ = "0.1.0"

# Import main components for easier access
from wtreg_py.core.data_structures import StationData
from wtreg_py.core.weights import calculate_weights
from wtreg_py.analysis.detide import wtreg
from wtreg_py.analysis.metabolism import ecometab, MetabResult
from wtreg_py.analysis.evaluation import meteval, objfun
from wtreg_py.analysis.optimization import winopt, WindowOptResult
from wtreg_py.analysis.aggregate import aggregate_metab
from wtreg_py.analysis.correlation import evalcor

__all__ = [
    # Core classes
    "StationData",
    "MetabResult",
    "WindowOptResult",
    # Main functions
    "calculate_weights",
    "wtreg",
    "ecometab",
    "meteval",
    "objfun",
    "winopt",
    "aggregate_metab",
    "evalcor",
    # Version
    "__version__",
]
