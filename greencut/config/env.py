from __future__ import annotations
import os
from dataclasses import dataclass

from greencut.contracts.types import Caps
from greencut.finance.drivers import FinancialParams


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def get_caps_config() -> Caps:
    base = Caps()
    return Caps(
        morale=_float_env("GREENCUT_CAP_MORALE", base.morale),
        credibility=_float_env("GREENCUT_CAP_CREDIBILITY", base.credibility),
        service_risk=_float_env("GREENCUT_CAP_SERVICE_RISK", base.service_risk),
        backlog_pressure=_float_env("GREENCUT_CAP_BACKLOG_PRESSURE", base.backlog_pressure),
    )


def get_finance_config() -> FinancialParams:
    base = FinancialParams()
    return FinancialParams(
        period_days=_float_env("GREENCUT_PERIOD_DAYS", base.period_days),
        min_cash_buffer=_float_env("GREENCUT_MIN_CASH_BUFFER", base.min_cash_buffer),
        depreciation_life_years=_float_env("GREENCUT_DEPRECIATION_YEARS", base.depreciation_life_years),
        scrap_rate=base.scrap_rate,
    )


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    fmt: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_log_config() -> LogConfig:
    return LogConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
