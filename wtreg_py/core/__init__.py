"""
Core modules for wtreg_py.

This package contains the station data container, preprocessing, solar day
segmentation, kernel weights and air-sea gas exchange.
"""

from wtreg_py.core.data_structures import (
    StationData,
    as_station_data,
    check_timezone,
    check_sorted,
    check_duplicates,
    STATION_UNITS,
)
from wtreg_py.core.preprocessing import (
    hour_of_day,
    interval_midpoints,
    climate_means,
)
from wtreg_py.core.solar import (
    sun_events,
    metabolic_days,
    decimal_time,
)
from wtreg_py.core.weights import (
    tricube,
    circular_distance,
    resolve_windows,
    calculate_weights,
    KernelWeights,
)
from wtreg_py.core.gas_exchange import (
    oxygen_solubility,
    oxygen_schmidt,
    calc_kl_thiebault,
    calc_kl_wanninkhof,
    calculate_gas_transfer,
    GAS_EXCHANGE_MODELS,
)

__all__ = [
    # Data structures
    "StationData",
    "as_station_data",
    "check_timezone",
    "check_sorted",
    "check_duplicates",
    "STATION_UNITS",
    # Preprocessing
    "hour_of_day",
    "interval_midpoints",
    "climate_means",
    # Solar days
    "sun_events",
    "metabolic_days",
    "decimal_time",
    # Weights
    "tricube",
    "circular_distance",
    "resolve_windows",
    "calculate_weights",
    "KernelWeights",
    # Gas exchange
    "oxygen_solubility",
    "oxygen_schmidt",
    "calc_kl_thiebault",
    "calc_kl_wanninkhof",
    "calculate_gas_transfer",
    "GAS_EXCHANGE_MODELS",
]
