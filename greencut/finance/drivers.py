from __future__ import annotations
from dataclasses import dataclass, fields
import math

from greencut.contracts.types import BalanceSheet


@dataclass(frozen=True)
class FinancialDrivers:
    units_sold: float
    avg_price: float
    unit_cost: float
    opex_base: float
    capex_base: float

    # Working capital days
    dso: float
    dpo: float
    dio: float


@dataclass(frozen=True)
class FinancialParams:
    period_days: float = 30
    min_cash_buffer: float = 250_000  # small operating buffer
    depreciation_life_years: float = 5  # straight-line
    scrap_rate: float = 0.0  # returns/scrap uplift on COGS, 0..0.25


@dataclass(frozen=True)
class FinancePolicy:
    dividend: bool = False


@dataclass(frozen=True)
class DriverBounds:
    units_min: float = 100
    units_max: float = 1_000_000
    price_min: float = 10
    price_max: float = 10_000
    cost_min: float = 5
    cost_max: float = 9_999
    dso_min: float = 5
    dso_max: float = 90
    dpo_min: float = 5
    dpo_max: float = 90
    dio_min: float = 5
    dio_max: float = 120
    capex_min: float = 0
    capex_max: float = 5_000_000
    scrap_max: float = 0.25


@dataclass(frozen=True)
class Elasticities:
    """KPI -> driver sensitivities per unit of signal strength."""
    morale_to_units: float = 0.06
    cred_to_price: float = 0.02
    backlog_to_units: float = -0.08
    service_to_returns: float = 0.03
    service_to_dso_days: float = 3
    backlog_to_dio_days: float = 4
    supply_fragile_to_dio: float = 3
    reg_probe_to_dso: float = 2
    penalty_trim: float = 0.01  # at most 1% off units or price
    capex_growth: float = 1.05


STARTING_BALANCE = BalanceSheet(
    cash=1_000_000,
    ar=250_000,
    inventory=300_000,
    ppe=2_000_000,
    ap=200_000,
    debt=0,
    retained_earnings=1_350_000,
    other_equity=1_700_000,
)

BASELINE_DRIVERS = FinancialDrivers(
    units_sold=10_000,
    avg_price=100,
    unit_cost=60,
    opex_base=300_000,
    capex_base=50_000,
    dso=30,
    dpo=30,
    dio=45,
)

DEFAULT_PARAMS = FinancialParams()
DRIVER_BOUNDS = DriverBounds()
ELASTICITIES = Elasticities()


def clamp(x: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, x))


def validate_drivers(d: FinancialDrivers) -> None:
    for f in fields(d):
        v = getattr(d, f.name)
        if not math.isfinite(v):
            raise ValueError(f"{f.name} must be a finite number")
        if v < 0:
            raise ValueError(f"{f.name} must be non-negative")


def validate_params(p: FinancialParams) -> None:
    if not (p.period_days > 0):
        raise ValueError("period_days must be positive")
    if p.min_cash_buffer < 0:
        raise ValueError("min_cash_buffer must be non-negative")
    if not (p.depreciation_life_years > 0):
        raise ValueError("depreciation_life_years must be positive")
    if not (0.0 <= p.scrap_rate <= DRIVER_BOUNDS.scrap_max):
        raise ValueError("scrap_rate must be between 0 and 25%")
