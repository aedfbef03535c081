from __future__ import annotations
from typing import List, Optional
import logging

from greencut.contracts.types import BalanceSheet, CashFlow, FinancialSnapshot, PnL
from greencut.finance.drivers import FinancialDrivers, FinancialParams, FinancePolicy

logger = logging.getLogger(__name__)

TOLERANCE = 1e-6
BASE_PERIOD_DAYS = 30
DIVIDEND_SHARE_OF_SURPLUS = 0.25


def compute_financials(
    prior: BalanceSheet,
    drivers: FinancialDrivers,
    params: FinancialParams,
    policy: Optional[FinancePolicy] = None,
    direct_cash_spend: float = 0.0,
) -> FinancialSnapshot:
    """Compute one period's P&L, cash flow and closing balance sheet.

    Inputs:
    - prior: previous closing balance sheet (read by value, never mutated)
    - drivers: units, price, cost, opex, capex, DSO/DPO/DIO
    - params: period length, minimum cash buffer, depreciation life, scrap rate
    - policy: optional dividend flag
    - direct_cash_spend: extra outflow applied after the financing step

    Accounting identities enforced:
    - Assets == AP + debt + other equity + retained earnings (retained-earnings
      plug when drift exceeds tolerance; balance_ok stays True)
    - cash_close == cash_open + CFO + CFI + CFF - direct spend (reported via
      cash_recon_ok, not healed)
    Interest and taxes are held at zero.
    """
    policy = policy or FinancePolicy()
    notes: List[str] = []
    cash_open = prior.cash

    # P&L
    revenue = drivers.units_sold * drivers.avg_price
    cogs_core = drivers.units_sold * drivers.unit_cost
    scrap = params.scrap_rate or 0.0
    cogs = cogs_core + cogs_core * scrap
    if scrap > 0:
        notes.append(f"Applied scrap/returns factor {scrap:.3f} to COGS.")
    gross_profit = revenue - cogs
    opex = drivers.opex_base
    ebitda = gross_profit - opex
    life_years = max(1.0, params.depreciation_life_years)
    depreciation = prior.ppe / life_years / 12 * (params.period_days / BASE_PERIOD_DAYS)
    ebit = ebitda - depreciation
    interest = 0.0
    taxes = 0.0
    net_income = ebit - interest - taxes

    # Working capital levels from days
    period = max(1.0, params.period_days)
    ar = revenue * (drivers.dso / period)
    inventory = cogs * (drivers.dio / period)
    ap = cogs * (drivers.dpo / period)
    delta_nwc = (ar - prior.ar) + (inventory - prior.inventory) - (ap - prior.ap)

    # Capex and PP&E
    capex = drivers.capex_base
    ppe = max(0.0, prior.ppe + capex - depreciation)

    # Indirect cash flow
    cfo = net_income + depreciation - delta_nwc
    cfi = -capex
    cff = 0.0
    debt = prior.debt
    retained_earnings = prior.retained_earnings + net_income
    other_equity = prior.other_equity

    # Financing: draw debt to the buffer, else optionally pay a dividend
    provisional = cash_open + cfo + cfi + cff
    if provisional < params.min_cash_buffer:
        needed = params.min_cash_buffer - provisional
        debt += needed
        cff += needed
        notes.append("Debt draw to maintain minimum cash buffer.")
        logger.debug("debt draw of %.2f to restore %.2f buffer", needed, params.min_cash_buffer)
    elif policy.dividend and retained_earnings > 0 and provisional > params.min_cash_buffer:
        dividend = min(retained_earnings, (provisional - params.min_cash_buffer) * DIVIDEND_SHARE_OF_SURPLUS)
        if dividend > 0:
            retained_earnings -= dividend
            cff -= dividend
            notes.append("Dividend paid from retained earnings.")

    spend = max(0.0, direct_cash_spend or 0.0)
    if spend > 0:
        retained_earnings -= spend
        notes.append(f"Direct cash spend of {spend:,.0f} applied after financing.")

    cash_close = cash_open + cfo + cfi + cff - spend
    cash = max(0.0, cash_close)
    if cash != cash_close:
        notes.append("Cash floor engaged; closing cash held at zero.")

    balance = BalanceSheet(
        cash=cash, ar=ar, inventory=inventory, ppe=ppe,
        ap=ap, debt=debt,
        retained_earnings=retained_earnings, other_equity=other_equity,
    )

    # Identities and checks
    gap = balance.assets() - balance.liabilities_and_equity()
    if abs(gap) >= TOLERANCE:
        balance = BalanceSheet(
            cash=cash, ar=ar, inventory=inventory, ppe=ppe,
            ap=ap, debt=debt,
            retained_earnings=retained_earnings + gap, other_equity=other_equity,
        )
        notes.append(f"Applied retained earnings plug of {gap:,.2f} to balance assets=liabilities+equity.")
        logger.info("balance sheet plug of %.6f applied to retained earnings", gap)
    balance_ok = True

    expected_close = cash_open + cfo + cfi + cff - spend
    cash_recon_ok = abs(cash - expected_close) < TOLERANCE
    if not cash_recon_ok:
        notes.append("Cash reconciliation drifted; review CFO/CFI/CFF.")
        logger.warning("cash reconciliation off by %.2f", cash - expected_close)

    return FinancialSnapshot(
        cash_open=cash_open,
        pnl=PnL(
            revenue=revenue, cogs=cogs, gross_profit=gross_profit, opex=opex, ebitda=ebitda,
            depreciation=depreciation, ebit=ebit, interest=interest, taxes=taxes, net_income=net_income,
        ),
        cashflow=CashFlow(cfo=cfo, cfi=cfi, cff=cff),
        balance=balance,
        cash_close=cash,
        balance_ok=balance_ok,
        cash_recon_ok=cash_recon_ok,
        direct_cash_spend=spend,
        notes=tuple(notes),
    )
