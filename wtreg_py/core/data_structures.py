"""
Data structures for wtreg_py, including the StationData class.

This module wraps the water quality and weather time series collected at a
monitoring station, tracking units and variable categories alongside the
pandas DataFrame, and provides the timestamp checks every analysis step
relies on.
"""

from typing import Dict, List, Optional, Union, Any
import pandas as pd
import numpy as np
from copy import deepcopy


# Units of the standard station columns
STATION_UNITS = {
    "DateTimeStamp": "local time",
    "Temp": "°C",
    "Sal": "psu",
    "DO_obs": "mg L⁻¹",
    "DO_prd": "mg L⁻¹",
    "DO_nrm": "mg L⁻¹",
    "ATemp": "°C",
    "BP": "mb",
    "WSpd": "m s⁻¹",
    "Tide": "m",
    "dec_time": "d",
    "hour": "h",
    "day_hrs": "h",
}

# Categories of the standard station columns
STATION_CATEGORIES = {
    "DateTimeStamp": "time",
    "Temp": "water quality",
    "Sal": "water quality",
    "DO_obs": "water quality",
    "Tide": "water quality",
    "ATemp": "weather",
    "BP": "weather",
    "WSpd": "weather",
}


class StationData:
    """
    Station time series with units and metadata tracking.

    Attributes:
        data: The main pandas DataFrame, one row per observation
        units: Dictionary mapping column names to their units
        categories: Dictionary mapping column names to their categories
        datetime_column: Name of the tz-aware timestamp column
    """

    def __init__(
        self,
        data: Union[pd.DataFrame, Dict, List],
        units: Optional[Dict[str, str]] = None,
        categories: Optional[Dict[str, str]] = None,
        datetime_column: str = "DateTimeStamp"
    ):
        """
        Initialize a StationData object.

        Args:
            data: Data to store (DataFrame, dict, or list)
            units: Dictionary of column names to unit strings
            categories: Dictionary of column names to category strings
            datetime_column: Name of the timestamp column
        """
        if isinstance(data, pd.DataFrame):
            self.data = data.copy()
        else:
            self.data = pd.DataFrame(data)

        self.units = units or {}
        self.categories = categories or {}
        self.datetime_column = datetime_column

        for col in self.data.columns:
            if col not in self.units:
                self.units[col] = STATION_UNITS.get(col, "dimensionless")
            if col not in self.categories:
                self.categories[col] = STATION_CATEGORIES.get(col, "unknown")

    def check_required_variables(
        self,
        required: List[str],
        raise_error: bool = True
    ) -> bool:
        """
        Check if required columns exist in the data.

        Args:
            required: List of required column names
            raise_error: If True, raise ValueError if columns are missing

        Returns:
            True if all required columns exist, False otherwise

        Raises:
            ValueError: If raise_error=True and columns are missing
        """
        missing = [col for col in required if col not in self.data.columns]

        if missing:
            msg = f"The following columns are missing from the data: {', '.join(missing)}"
            if raise_error:
                raise ValueError(msg)
            print(f"Warning: {msg}")
            return False
        return True

    def check_timestamps(self, tz: str, allow_duplicates: bool = False) -> None:
        """
        Validate the timestamp column against the site timezone.

        Raises:
            ValueError: On timezone mismatch, unsorted or duplicated timestamps
        """
        self.check_required_variables([self.datetime_column])
        stamps = self.data[self.datetime_column]
        check_timezone(stamps, tz)
        check_sorted(stamps)
        if not allow_duplicates:
            check_duplicates(stamps)

    @property
    def timestamps(self) -> pd.Series:
        return self.data[self.datetime_column]

    def get_column_units(self, column: str) -> str:
        """Get units for a specific column."""
        return self.units.get(column, "dimensionless")

    def set_variable(
        self,
        name: str,
        values: Union[np.ndarray, pd.Series, List, float],
        units: str = "dimensionless",
        category: str = "calculated"
    ) -> None:
        """
        Add or update a variable.

        Args:
            name: Column name
            values: Values to set
            units: Units for the variable
            category: Category/source for the variable
        """
        self.data[name] = values
        self.units[name] = units
        self.categories[name] = category

    def copy(self) -> 'StationData':
        """Create a deep copy of the StationData."""
        return StationData(
            data=self.data.copy(),
            units=deepcopy(self.units),
            categories=deepcopy(self.categories),
            datetime_column=self.datetime_column
        )

    def __repr__(self) -> str:
        n_rows, n_cols = self.data.shape
        cols_with_units = [
            f"{col} [{self.units.get(col, '?')}]"
            for col in self.data.columns[:5]
        ]
        if n_cols > 5:
            cols_with_units.append("...")

        return (
            f"StationData with {n_rows} rows and {n_cols} columns:\n"
            f"Columns: {', '.join(cols_with_units)}"
        )

    def __len__(self) -> int:
        return len(self.data)

    def __getitem__(self, key: str) -> pd.Series:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.set_variable(key, value)


def as_station_data(
    data: Union[pd.DataFrame, StationData],
    datetime_column: str = "DateTimeStamp"
) -> StationData:
    """Wrap a DataFrame as StationData, copying so the caller's frame is untouched."""
    if isinstance(data, StationData):
        return data.copy()
    if isinstance(data, pd.DataFrame):
        return StationData(data.reset_index(drop=True), datetime_column=datetime_column)
    raise ValueError("Data must be a pandas DataFrame or StationData")


def check_timezone(stamps: pd.Series, tz: str) -> None:
    """
    Verify a timestamp series is tz-aware and matches the declared timezone.

    Raises:
        ValueError: If the series is naive or in another timezone
    """
    if not pd.api.types.is_datetime64_any_dtype(stamps):
        raise ValueError("Timestamp column must be a datetime column")

    data_tz = stamps.dt.tz
    if data_tz is None:
        raise ValueError(
            f"Timestamps have no timezone, localize them to '{tz}' first"
        )
    if str(data_tz) != str(tz):
        raise ValueError(
            f"Data timezone '{data_tz}' differs from tz argument '{tz}'"
        )


def check_sorted(stamps: pd.Series) -> None:
    """
    Raises:
        ValueError: If timestamps are not in ascending order
    """
    values = pd.DatetimeIndex(stamps)
    if not values.is_monotonic_increasing:
        bad = np.flatnonzero(np.diff(values.asi8) < 0) + 1
        raise ValueError(
            f"Timestamps are unsorted, check rows: {', '.join(str(i) for i in bad[:20])}"
        )


def check_duplicates(stamps: pd.Series) -> None:
    """
    Raises:
        ValueError: If any timestamp appears more than once
    """
    dups = stamps.duplicated()
    if dups.any():
        rows = np.flatnonzero(dups.values)
        raise ValueError(
            f"Duplicated observations found, check rows: {', '.join(str(i) for i in rows[:20])}"
        )
