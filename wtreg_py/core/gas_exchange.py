"""
Air-sea oxygen exchange for open-water metabolism.

This module implements the oxygen mass transfer coefficient (KL, m d⁻¹) used
to estimate the volumetric reaeration coefficient, with two alternative
formulations, plus dissolved oxygen solubility and the Schmidt number for
oxygen in seawater.

References:
    Ro KS, Hunt PG. 2006. A new unified equation for wind-driven surficial
    oxygen transfer into stationary water bodies. Transactions of the ASABE
    49(5):1615-1622.

    Thebault J, Schraga TS, Cloern JE, Dunlavey EG. 2008. Primary production
    and carrying capacity of former salt ponds after reconnection to San
    Francisco Bay. Wetlands 28(3):841-851.

    Wanninkhof R. 2014. Relationship between wind speed and gas exchange
    over the ocean revisited. Limnology and Oceanography: Methods
    12(6):351-362.
"""

from typing import Callable, Dict, Union

import gsw
import numpy as np

ArrayLike = Union[float, np.ndarray]

ABSOLUTE_ZERO = -273.15  # degrees C
MB_PER_ATM = 1013.25
BOLTZMANN = 1.3806503e-23  # m2 kg s-2 K-1
O2_RADIUS = 1.72e-10  # radius of the O2 molecule (m)
GAS_CONSTANT_DRY_AIR = 287.05  # J kg-1 K-1
GAS_CONSTANT_VAPOR = 461.495  # J kg-1 K-1
SURFACE_ROUGHNESS = 1e-5  # roughness length (m) of a smooth water surface
WANNINKHOF_COEF = 0.251  # cm hr-1 (m s-1)-2

# Schmidt number polynomial coefficients for oxygen at S = 0 and S = 35
SCHMIDT_COEF_S0 = (1745.1, -124.34, 4.8055, -0.10115, 0.00086842)
SCHMIDT_COEF_S35 = (1920.4, -135.6, 5.2122, -0.10939, 0.00093777)


def oxygen_solubility(
    temp: ArrayLike,
    sal: ArrayLike,
    pressure: ArrayLike = None
) -> ArrayLike:
    """
    Dissolved oxygen concentration at saturation (mg L⁻¹).

    Benson and Krause equations as given in APHA Standard Methods, with an
    optional correction for non-standard atmospheric pressure.

    Args:
        temp: Water temperature (°C)
        sal: Salinity (psu)
        pressure: Barometric pressure (atm), standard pressure if omitted

    Returns:
        Oxygen solubility in mg L⁻¹
    """
    temp = np.asarray(temp, dtype=float)
    sal = np.asarray(sal, dtype=float)
    temp_k = temp - ABSOLUTE_ZERO

    ln_cstar = (
        -139.34411
        + 1.575701e5 / temp_k
        - 6.642308e7 / temp_k ** 2
        + 1.243800e10 / temp_k ** 3
        - 8.621949e11 / temp_k ** 4
        - sal * (0.017674 - 10.754 / temp_k + 2140.7 / temp_k ** 2)
    )
    cstar = np.exp(ln_cstar)

    if pressure is None:
        return cstar

    pressure = np.asarray(pressure, dtype=float)

    # water vapour pressure (atm)
    pwv = (1 - 0.000537 * sal) * np.exp(
        18.1973 * (1 - 373.16 / temp_k)
        + 3.1813e-7 * (1 - np.exp(26.1205 * (1 - temp_k / 373.16)))
        - 0.018726 * (1 - np.exp(8.03945 * (1 - 373.16 / temp_k)))
        + 5.02802 * np.log(373.16 / temp_k)
    )
    theta = 0.000975 - 1.426e-5 * temp + 6.436e-8 * temp ** 2

    return cstar * pressure * (1 - pwv / pressure) * (1 - theta * pressure) / \
        ((1 - pwv) * (1 - theta))


def oxygen_schmidt(temp: ArrayLike, sal: ArrayLike) -> ArrayLike:
    """
    Schmidt number for oxygen.

    Fourth order polynomials in temperature at salinity 0 and 35, linearly
    interpolated to the observed salinity.
    """
    temp = np.asarray(temp, dtype=float)
    sal = np.asarray(sal, dtype=float)

    sc0 = np.polynomial.polynomial.polyval(temp, SCHMIDT_COEF_S0)
    sc35 = np.polynomial.polynomial.polyval(temp, SCHMIDT_COEF_S35)

    return sc0 + sal * (sc35 - sc0) / 35.0


def seawater_sigma_t(sal: ArrayLike, temp: ArrayLike) -> ArrayLike:
    """Density anomaly of seawater at the surface (kg m⁻³ less 1000)."""
    sal = np.asarray(sal, dtype=float)
    temp = np.asarray(temp, dtype=float)
    sr = gsw.SR_from_SP(sal)
    ct = gsw.CT_from_t(sr, temp, 0)
    return gsw.rho(sr, ct, 0) - 1000.0


def calc_kl_thiebault(
    temp: ArrayLike,
    sal: ArrayLike,
    atemp: ArrayLike,
    wspd: ArrayLike,
    bp: ArrayLike,
    height: float = 10.0
) -> ArrayLike:
    """
    Oxygen mass transfer coefficient following Thebault et al. 2008.

    Wind speed is adjusted to 10 m for a smooth water surface, and the
    transfer velocity scales with the diffusivity of O2 in seawater, the
    seawater kinematic viscosity and the air/water density ratio.

    Args:
        temp: Water temperature (°C)
        sal: Salinity (psu)
        atemp: Air temperature (°C)
        wspd: Wind speed (m s⁻¹)
        bp: Barometric pressure (mb)
        height: Height of the anemometer (m)

    Returns:
        KL in m d⁻¹
    """
    temp = np.asarray(temp, dtype=float)
    sal = np.asarray(sal, dtype=float)
    atemp = np.asarray(atemp, dtype=float)
    wspd = np.asarray(wspd, dtype=float)
    bp = np.asarray(bp, dtype=float)

    patm = bp * 100  # Pa
    u10 = wspd * np.log(10 / SURFACE_ROUGHNESS) / np.log(height / SURFACE_ROUGHNESS)
    temp_k = temp - ABSOLUTE_ZERO
    atemp_k = atemp - ABSOLUTE_ZERO

    rho_w = 1000 + seawater_sigma_t(sal, temp)

    # dynamic viscosity of pure water, then seawater
    upw = 1.002e-3 * 10 ** (
        (1.1709 * (20 - temp) - 1.827e-3 * (temp - 20) ** 2) / (temp + 89.93)
    )
    sal_term = rho_w * sal / 1806.55
    uw = upw * (
        1
        + (5.185e-5 * temp + 1.0675e-4) * np.sqrt(sal_term)
        + (3.3e-5 * temp + 2.591e-3) * sal_term
    )
    vw = uw / rho_w  # kinematic viscosity

    # moist air density from water vapour pressure (Pa)
    pv = 6.112 * np.exp(17.65 * atemp / (243.12 + atemp)) * 100
    rho_a = (patm - pv) / (GAS_CONSTANT_DRY_AIR * atemp_k) + pv / (GAS_CONSTANT_VAPOR * temp_k)

    dw = BOLTZMANN * temp_k / (4 * np.pi * uw * O2_RADIUS)  # diffusivity of O2 in water

    return 0.24 * 170.6 * np.sqrt(dw / vw) * np.sqrt(rho_a / rho_w) * u10 ** 1.81


def calc_kl_wanninkhof(temp: ArrayLike, sal: ArrayLike, wspd: ArrayLike) -> ArrayLike:
    """
    Oxygen gas transfer velocity following Wanninkhof 2014.

    k = 0.251 * U10^2 * (Sc / 660)^-0.5, converted from cm hr⁻¹ to m d⁻¹.

    Args:
        temp: Water temperature (°C)
        sal: Salinity (psu)
        wspd: Wind speed at 10 m (m s⁻¹)

    Returns:
        KL in m d⁻¹
    """
    wspd = np.asarray(wspd, dtype=float)
    sc = oxygen_schmidt(temp, sal)

    kw = WANNINKHOF_COEF * wspd ** 2 * (sc / 660) ** -0.5  # cm hr-1
    return kw * 24 / 100


GAS_EXCHANGE_MODELS: Dict[str, Callable] = {
    'Thiebault': calc_kl_thiebault,
    'Wanninkhof': calc_kl_wanninkhof,
}

# Columns each gas exchange model requires in addition to time, DO and depth
GAS_EXCHANGE_COLUMNS = {
    'Thiebault': ['Temp', 'Sal', 'ATemp', 'BP', 'WSpd'],
    'Wanninkhof': ['Temp', 'Sal', 'BP', 'WSpd'],
}


def calculate_gas_transfer(
    temp: ArrayLike,
    sal: ArrayLike,
    wspd: ArrayLike,
    atemp: ArrayLike = None,
    bp: ArrayLike = None,
    gasex: str = 'Thiebault',
    height: float = 10.0
) -> ArrayLike:
    """
    Oxygen mass transfer coefficient (m d⁻¹) for the selected formulation.

    Raises:
        ValueError: For an unknown formulation or missing inputs
    """
    if gasex not in GAS_EXCHANGE_MODELS:
        raise ValueError(
            f"Unknown gas exchange model: {gasex}, use one of {list(GAS_EXCHANGE_MODELS)}"
        )

    if gasex == 'Thiebault':
        if atemp is None or bp is None:
            raise ValueError("Thiebault gas exchange requires air temperature and barometric pressure")
        return calc_kl_thiebault(temp, sal, atemp, wspd, bp, height=height)

    return calc_kl_wanninkhof(temp, sal, wspd)
