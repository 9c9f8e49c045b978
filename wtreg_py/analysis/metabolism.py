"""
Ecosystem metabolism with the Odum open-water method.

Daily integrated gross production (Pg), total respiration (Rt) and net
ecosystem metabolism (NEM) are estimated from the change in dissolved oxygen
over time, corrected for air-sea gas exchange. Diffusion-corrected DO fluxes
are averaged separately over the day and night of each metabolic day. Night
fluxes scaled to 24 hours give respiration, day fluxes scaled to the hours of
daylight give net production, and respiration is removed from net production
to give gross production.

All DO calculations are done in molar units (mmol O2 m⁻³).

References:
    Caffrey JM, Murrell MC, Amacker KS, Harper J, Phipps S, Woodrey M. 2013.
    Seasonal and inter-annual patterns in primary production, respiration
    and net ecosystem metabolism in 3 estuaries in the northeast Gulf of
    Mexico. Estuaries and Coasts 37(1):222-241.

    Odum HT. 1956. Primary production in flowing waters. Limnology and
    Oceanography 1(2):102-117.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Union
import warnings

import numpy as np
import pandas as pd

from ..core.data_structures import StationData, as_station_data
from ..core.gas_exchange import (
    GAS_EXCHANGE_COLUMNS,
    MB_PER_ATM,
    calculate_gas_transfer,
    oxygen_solubility
)
from ..core.preprocessing import climate_means, interval_midpoints
from ..core.solar import metabolic_days


# 1 mmol O2 = 32 mg O2 = 0.032 g O2
MMOL_TO_GRAMS = 0.032
O2_MOLAR_MASS = 32.0  # mg mmol-1

METAB_UNITS = ('mmol', 'grams')
GAS_AVERAGING = ('instant', 'daily', 'all')
METAB_COLUMNS = ['Pg', 'Rt', 'NEM', 'Pg_vol', 'Rt_vol', 'NEM_vol']
FLUX_COLUMNS = ['DOF_d', 'D_d', 'DOF_n', 'D_n']
MIN_PERIOD_RECORDS = 3
SENSOR_OFFSET = 0.5  # m, sensors sit slightly above the bottom
MIN_DEPTH = 1.0  # m

# Per-interval columns converted when reporting instantaneous output in grams
INSTANT_CONVERT = ['DO', 'dDO', 'D'] + METAB_COLUMNS


@dataclass
class MetabResult:
    """
    Daily metabolism estimates with their provenance.

    Attributes:
        data: One row per metabolic day with Date, Pg, Rt, NEM and volumetric
            Pg_vol, Rt_vol, NEM_vol
        do_column: Name of the DO column used
        depth_column: Name of the depth/tide column used, None if depth was
            supplied manually
        rawdat: Midpoint-shifted, climate-filled series used for the estimate
        units: 'mmol' or 'grams'
        gasex: Gas exchange formulation used
    """
    data: pd.DataFrame
    do_column: str
    depth_column: Optional[str]
    rawdat: pd.DataFrame
    units: str = 'mmol'
    gasex: str = 'Thiebault'
    settings: Dict = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.data)

    @property
    def dates(self) -> pd.Series:
        return self.data['Date']

    def dropna(self) -> pd.DataFrame:
        """Days with both Pg and Rt defined."""
        return self.data.dropna(subset=['Pg', 'Rt'])

    def to_units(self, units: str) -> 'MetabResult':
        return convert_metab_units(self, units)


def convert_metab_units(result: MetabResult, units: str) -> MetabResult:
    """
    Convert daily metabolism between mmol O2 and g O2.

    Args:
        result: Metabolism estimates
        units: Target units, 'mmol' or 'grams'

    Returns:
        New MetabResult in the target units
    """
    if units not in METAB_UNITS:
        raise ValueError(f"Units must be one of {METAB_UNITS}, got {units}")
    if units == result.units:
        return result

    factor = MMOL_TO_GRAMS if units == 'grams' else 1 / MMOL_TO_GRAMS
    data = result.data.copy()
    cols = [col for col in METAB_COLUMNS if col in data.columns]
    data[cols] = data[cols].astype(float) * factor

    return replace(result, data=data, units=units)


def _station_depth(
    data: pd.DataFrame,
    depth_column: Optional[str],
    depth_vec: Optional[Union[float, Sequence[float]]]
) -> np.ndarray:
    """
    Water column depth for each midpoint record.

    Mean of the depth column floored at one meter plus the sensor offset, or
    the manually supplied constant or vector (one value per original record).
    """
    n = len(data)
    if depth_column is not None:
        if depth_column not in data.columns:
            raise ValueError(f"{depth_column} column for depth_column not in data")
        # missing depths stay missing and are left out of the mean
        depth = np.maximum(MIN_DEPTH, data[depth_column].to_numpy(dtype=float))
        return np.full(n, SENSOR_OFFSET + np.nanmean(depth))

    if depth_vec is None:
        raise ValueError("Requires value for depth_vec if depth_column is None")

    depth_vec = np.atleast_1d(np.asarray(depth_vec, dtype=float))
    if depth_vec.size == 1:
        return np.full(n, depth_vec[0])

    # drop the first value to align with midpoints
    depth_vec = depth_vec[1:]
    if depth_vec.size != n:
        raise ValueError(
            f"depth_vec must have one value per observation ({n + 1}), got {depth_vec.size + 1}"
        )
    return depth_vec


def _average_gas_transfer(kl: np.ndarray, stamps: pd.Series, gasave: str) -> np.ndarray:
    if gasave == 'daily':
        dates = stamps.dt.date.values
        return pd.Series(kl).groupby(dates).transform('mean').to_numpy(dtype=float)
    if gasave == 'all':
        return np.full(len(kl), np.nanmean(kl))
    return kl


def _period_fluxes(day: pd.DataFrame) -> pd.Series:
    """
    Mean day and night DO flux and exchange for one metabolic day (mmol m⁻² hr⁻¹).

    Undefined unless both periods have at least three DO flux records.
    """
    sunrise = day[day['solar_period'] == 'sunrise']
    sunset = day[day['solar_period'] == 'sunset']

    if (sunrise['dDO'].notna().sum() < MIN_PERIOD_RECORDS or
            sunset['dDO'].notna().sum() < MIN_PERIOD_RECORDS):
        return pd.Series({'DOF_d': np.nan, 'D_d': np.nan, 'DOF_n': np.nan, 'D_n': np.nan})

    return pd.Series({
        'DOF_d': (sunrise['dDO'] * sunrise['H']).mean(),
        'D_d': (sunrise['D'] * sunrise['H']).mean(),
        'DOF_n': (sunset['dDO'] * sunset['H']).mean(),
        'D_n': (sunset['D'] * sunset['H']).mean(),
    })


def _daily_metabolism(fluxes: pd.DataFrame, day_hrs: pd.Series, depth: pd.Series,
                      bott_stat: bool) -> pd.DataFrame:
    """Pg, Rt and NEM (mmol m⁻² d⁻¹) from day and night fluxes."""
    if not bott_stat:
        pg = ((fluxes['DOF_d'] - fluxes['D_d']) - (fluxes['DOF_n'] - fluxes['D_n'])) * day_hrs
        rt = (fluxes['DOF_n'] - fluxes['D_n']) * 24
    else:
        pg = (fluxes['DOF_d'] - fluxes['DOF_n']) * day_hrs
        rt = fluxes['DOF_n'] * 24

    out = pd.DataFrame({'Pg': pg, 'Rt': rt})
    out['NEM'] = out['Pg'] + out['Rt']
    out['Pg_vol'] = out['Pg'] / depth
    out['Rt_vol'] = out['Rt'] / depth
    out['NEM_vol'] = out['NEM'] / depth
    return out


def ecometab(
    data: Union[pd.DataFrame, StationData],
    tz: str,
    lat: float,
    long: float,
    do_column: str = 'DO_obs',
    depth_column: Optional[str] = 'Tide',
    metab_units: str = 'mmol',
    bott_stat: bool = False,
    depth_vec: Optional[Union[float, Sequence[float]]] = None,
    replacemet: bool = True,
    instant: bool = False,
    gasex: str = 'Thiebault',
    gasave: str = 'instant',
    height: float = 10.0,
    datetime_column: str = 'DateTimeStamp'
) -> Union[MetabResult, pd.DataFrame]:
    """
    Estimate daily ecosystem metabolism from a DO time series.

    Args:
        data: Water quality and weather time series, see the module
            documentation for required columns
        tz: Timezone name, must match the timestamps
        lat: Latitude (decimal degrees)
        long: Longitude (decimal degrees, negative west)
        do_column: DO column (mg L⁻¹) used to estimate metabolism
        depth_column: Column used to estimate water column depth, typically
            tidal height. Use None with ``depth_vec``.
        metab_units: 'mmol' or 'grams'
        bott_stat: If True air-sea gas exchange is not removed
        depth_vec: Station depth (m) as a constant or one value per record
        replacemet: Replace missing weather values with monthly/hourly means
        instant: Return the per-interval records instead of daily estimates
        gasex: 'Thiebault' or 'Wanninkhof' gas exchange
        gasave: 'instant', 'daily' or 'all' averaging of the gas transfer
            coefficient before the exchange flux is calculated
        height: Anemometer height (m) for the Thiebault formulation
        datetime_column: Name of the timestamp column

    Returns:
        MetabResult with daily Pg, Rt, NEM (mmol O2 m⁻² d⁻¹) and volumetric
        variants (mmol O2 m⁻³ d⁻¹), or a DataFrame of instantaneous records
        if ``instant`` is True

    Raises:
        ValueError: For unknown options, missing columns, timezone mismatch,
            duplicated or unsorted timestamps
    """
    if gasex not in GAS_EXCHANGE_COLUMNS:
        raise ValueError(f"gasex must be one of {list(GAS_EXCHANGE_COLUMNS)}, got {gasex}")
    if gasave not in GAS_AVERAGING:
        raise ValueError(f"gasave must be one of {GAS_AVERAGING}, got {gasave}")
    if metab_units not in METAB_UNITS:
        raise ValueError('Units must be mmol or grams')

    station = as_station_data(data, datetime_column=datetime_column)

    keep = [datetime_column] + GAS_EXCHANGE_COLUMNS[gasex] + [do_column]
    if depth_column is not None:
        keep.append(depth_column)
    keep = list(dict.fromkeys(keep))
    station.check_required_variables(keep)
    station.check_timestamps(tz)

    df = station.data[keep].copy()

    # mg/L to mmol/m3
    df['DO'] = pd.to_numeric(df[do_column], errors='coerce') / O2_MOLAR_MASS * 1000

    # hourly rate of change, mmol m-3 hr-1
    hours = df[datetime_column].diff().dt.total_seconds().to_numpy()[1:] / 3600
    ddo = np.diff(df['DO'].to_numpy(dtype=float)) / hours

    df = interval_midpoints(df, datetime_column=datetime_column)
    stamps = df[datetime_column]

    if replacemet:
        df = climate_means(df, gasex=gasex, datetime_column=datetime_column)

    # ratio of DO to DO at saturation
    do_sat = df[do_column] / oxygen_solubility(df['Temp'], df['Sal'], df['BP'] / MB_PER_ATM)

    depth = _station_depth(df, depth_column, depth_vec)

    df = metabolic_days(df, tz=tz, lat=lat, long=long, datetime_column=datetime_column)

    kl = calculate_gas_transfer(
        df['Temp'], df['Sal'], df['WSpd'],
        atemp=df['ATemp'] if gasex == 'Thiebault' else None,
        bp=df['BP'],
        gasex=gasex,
        height=height
    )
    kl = _average_gas_transfer(np.asarray(kl, dtype=float), stamps, gasave)

    # volumetric reaeration coefficient, hr-1
    ka = kl / 24 / depth

    # exchange at the air-water interface, mmol m-3 hr-1
    do = df['DO'].to_numpy(dtype=float)
    exchange = ka * (do / do_sat.to_numpy(dtype=float) - do)

    proc = df.drop(columns=[c for c in (do_column, depth_column) if c is not None])
    proc['DOsat'] = do_sat.to_numpy()
    proc['dDO'] = ddo
    proc['H'] = depth
    proc['D'] = exchange

    if instant:
        proc['KL'] = kl
        proc['Ka'] = ka
        return _instantaneous(proc, bott_stat, metab_units)

    grouped = proc.groupby('metab_date', sort=True)
    records = {date: _period_fluxes(day) for date, day in grouped}
    fluxes = pd.DataFrame.from_dict(records, orient='index', columns=FLUX_COLUMNS)
    day_hrs = grouped['day_hrs'].first()
    mean_depth = grouped['H'].mean()

    daily = _daily_metabolism(fluxes, day_hrs, mean_depth, bott_stat)
    daily.index.name = 'Date'
    daily = daily.reset_index()
    daily['Date'] = pd.to_datetime(daily['Date']).astype('datetime64[ns]')

    result = MetabResult(
        data=daily,
        do_column=do_column,
        depth_column=depth_column,
        rawdat=df,
        units='mmol',
        gasex=gasex,
        settings={'bott_stat': bott_stat, 'gasave': gasave, 'replacemet': replacemet}
    )

    if metab_units == 'grams':
        result = convert_metab_units(result, 'grams')

    n_missing = int(daily['Pg'].isna().sum())
    if n_missing == len(daily):
        warnings.warn("Metabolism could not be estimated for any metabolic day")

    return result


def _instantaneous(proc: pd.DataFrame, bott_stat: bool, metab_units: str) -> pd.DataFrame:
    """
    Per-interval records used to estimate daily rates.

    Fluxes are returned per day, Pg and NEM are missing during the night.
    """
    days: List[pd.DataFrame] = []
    for _, day in proc.groupby('metab_date', sort=True):
        day = day.copy()
        fluxes = _period_fluxes(day)
        is_day = day['solar_period'] == 'sunrise'

        if np.isnan(fluxes['DOF_n']):
            for col in ('DOF_d', 'D_d', 'DOF_n', 'D_n'):
                day[col] = np.nan
        else:
            day['DOF_d'] = (day['dDO'] * day['H']).where(is_day)
            day['D_d'] = (day['D'] * day['H']).where(is_day)
            day['DOF_n'] = fluxes['DOF_n']
            day['D_n'] = fluxes['D_n']

        day_hrs = day['day_hrs'].iloc[0]
        mean_depth = day['H'].mean()
        rates = _daily_metabolism(day[['DOF_d', 'D_d', 'DOF_n', 'D_n']], day_hrs, mean_depth, bott_stat)
        for col in METAB_COLUMNS:
            day[col] = rates[col]

        # mmol o2 m-3 hr-1 to mmol o2 m-2 d-1
        day['D'] = day['D'] * 24 * mean_depth
        day['dDO'] = day['dDO'] * 24
        days.append(day)

    out = pd.concat(days).sort_index() if days else proc.iloc[0:0].copy()
    out = out.reset_index(drop=True)

    if metab_units == 'grams':
        for col in INSTANT_CONVERT:
            if col in out.columns:
                out[col] = out[col] * MMOL_TO_GRAMS

    return out
