from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple
import logging
import math

from greencut.contracts.types import (
    BalanceSheet, Caps, CompanyState, DEFAULT_CAPS, EvaluatorOutput, FinancialSnapshot,
    PnLSummary, RngEvent, TurnResult,
)
from greencut.events.generator import generate_event, record_event, stable_hash
from greencut.finance.drivers import (
    BASELINE_DRIVERS, DEFAULT_PARAMS, DRIVER_BOUNDS, ELASTICITIES, STARTING_BALANCE,
    DriverBounds, Elasticities, FinancePolicy, FinancialDrivers, FinancialParams, clamp,
)
from greencut.finance.engine import compute_financials
from greencut.signals.resolver import apply_context_mods, apply_signals, clamp_deltas
from greencut.turn.spending import resolve_direct_spend

logger = logging.getLogger(__name__)

REG_PROBE_TYPES = ("reg_probe", "regulation")
MAX_RECENT_MOVES = 2


def prior_balance(state: CompanyState) -> BalanceSheet:
    """Previous closing balance sheet, or the starting balance on the first turn."""
    if state.financials is not None:
        return state.financials.balance
    return STARTING_BALANCE


def pnl_summary(snapshot: FinancialSnapshot) -> PnLSummary:
    p = snapshot.pnl
    return PnLSummary(
        revenue=p.revenue / 1e6,
        cogs=p.cogs / 1e6,
        gm_percent=(p.gross_profit / p.revenue * 100.0) if p.revenue else 0.0,
        opex=p.opex / 1e6,
        net=p.net_income / 1e6,
        cash=snapshot.balance.cash / 1e6,
    )


@dataclass(frozen=True)
class TurnEngine:
    """Pure turn resolver. Caps and finance settings are fixed per instance."""
    caps: Caps = DEFAULT_CAPS
    params: FinancialParams = DEFAULT_PARAMS
    baseline: FinancialDrivers = BASELINE_DRIVERS
    bounds: DriverBounds = DRIVER_BOUNDS
    coef: Elasticities = ELASTICITIES
    policy: FinancePolicy = field(default_factory=FinancePolicy)

    def generate_event(self, state: CompanyState, turn_index: int) -> RngEvent:
        return generate_event(state, turn_index)

    def map_drivers(
        self, state: CompanyState, declaration: str, ev: EvaluatorOutput
    ) -> Tuple[FinancialDrivers, FinancialParams, List[str]]:
        """Translate the turn's signals into financial drivers via fixed elasticities."""
        c, b = self.coef, self.bounds
        explainers: List[str] = []
        units = self.baseline.units_sold
        price = self.baseline.avg_price
        scrap = self.params.scrap_rate

        sig = ev.signals
        m = sig.morale.signed
        if m != 0:
            units *= 1 + c.morale_to_units * m
            explainers.append("Higher morale lifted throughput/demand" if m > 0 else "Lower morale softened throughput")
        cred = sig.credibility.signed
        if cred != 0:
            price *= 1 + c.cred_to_price * cred
            explainers.append("Rising credibility supported ASP" if cred > 0 else "Credibility strain pressured pricing")
        bp = sig.backlog_pressure.signed
        if bp != 0:
            units *= 1 + c.backlog_to_units * bp
            explainers.append("Backlog pressure constrained fulfilled units" if bp > 0 else "Easing backlog improved fulfillment")
        sr = sig.service_risk.signed
        if sr != 0:
            scrap = clamp(scrap + c.service_to_returns * max(0.0, sr), 0.0, b.scrap_max)
            explainers.append("Service risk increased scrap/returns" if sr > 0 else "Lower service risk reduced scrap/returns")

        # Working capital days
        dso, dpo, dio = self.baseline.dso, self.baseline.dpo, self.baseline.dio
        if sr > 0:
            dso += c.service_to_dso_days * sr
        if bp > 0:
            dio += c.backlog_to_dio_days * bp
        if state.flags.supply_fragile:
            dio += c.supply_fragile_to_dio
            explainers.append("Supply fragility extended inventory days")
        if ev.event.event_type in REG_PROBE_TYPES:
            dso += c.reg_probe_to_dso
            explainers.append("Regulatory scrutiny stretched receivables")
        dso = clamp(dso, b.dso_min, b.dso_max)
        dpo = clamp(dpo, b.dpo_min, b.dpo_max)
        dio = clamp(dio, b.dio_min, b.dio_max)

        # Penalty side is fixed by the declaration text
        pen = max(0.0, ev.nonsense_penalty)
        if pen > 0:
            if stable_hash(declaration or "", "penalty_split") % 2 == 0:
                units *= 1 - c.penalty_trim * pen
                explainers.append("Minor reputational drag softened demand")
            else:
                price *= 1 - c.penalty_trim * pen
                explainers.append("Minor reputational drag trimmed pricing power")

        channels = ev.event.impact_channels
        if channels.service_risk is not None and channels.service_risk.dir == "up":
            scrap = clamp(scrap + c.service_to_returns * channels.service_risk.strength, 0.0, b.scrap_max)
            explainers.append("Event pressure raised service friction")
        if channels.backlog_pressure is not None and channels.backlog_pressure.dir == "up":
            strength = channels.backlog_pressure.strength
            units *= 1 + c.backlog_to_units * strength
            dio = clamp(dio + c.backlog_to_dio_days * strength, b.dio_min, b.dio_max)
            explainers.append("Event constraints limited fulfillment and inventory turns")

        capex = self.baseline.capex_base
        if sig.morale.dir == "up" and sig.backlog_pressure.dir != "up":
            capex *= c.capex_growth

        drivers = FinancialDrivers(
            units_sold=clamp(math.floor(units + 0.5), b.units_min, b.units_max),
            avg_price=clamp(price, b.price_min, b.price_max),
            unit_cost=clamp(self.baseline.unit_cost, b.cost_min, b.cost_max),
            opex_base=self.baseline.opex_base,
            capex_base=clamp(capex, b.capex_min, b.capex_max),
            dso=dso,
            dpo=dpo,
            dio=dio,
        )
        return drivers, replace(self.params, scrap_rate=scrap), explainers

    def resolve_turn(
        self,
        state: CompanyState,
        declaration: str,
        ev: EvaluatorOutput,
        rng_event: Optional[RngEvent] = None,
    ) -> TurnResult:
        """Resolve one turn: context mods, capped KPI deltas, drivers, financials.

        When the turn's generated event is supplied it is booked onto the next
        state (tail risk, category pressure, active shocks) and echoed in the
        result.
        """
        modded = apply_context_mods(state)
        raw = apply_signals(ev, modded, self.caps)
        applied = clamp_deltas(raw, self.caps)

        drivers, params, explainers = self.map_drivers(state, declaration, ev)
        prior = prior_balance(state)
        spend = resolve_direct_spend(ev, declaration, prior.cash)
        if spend is not None:
            origin = " (from declaration text)" if spend.source == "text" else ""
            explainers.append(f"Direct cash expenditure: ${spend.amount / 1e6:.1f}M{origin}")
        snapshot = compute_financials(
            prior, drivers, params, self.policy,
            direct_cash_spend=spend.amount if spend is not None else 0.0,
        )

        base = record_event(modded, rng_event) if rng_event is not None else modded
        after = replace(
            base,
            turn_no=state.turn_no + 1,
            morale=clamp(modded.morale + applied["morale"], 0.0, 100.0),
            credibility=clamp(modded.credibility + applied["credibility"], 0.0, 100.0),
            backlog=max(0.0, modded.backlog + applied["backlog"]),
            service=clamp(modded.service + applied["service"], 0.0, 100.0),
            share=max(0.0, modded.share + applied["share"]),
            cash_runway=max(0.0, modded.cash_runway + applied["cash_runway"]),
            recent_moves=(tuple(state.recent_moves) + (declaration,))[-MAX_RECENT_MOVES:],
            pnl=pnl_summary(snapshot),
            financials=snapshot,
        )
        logger.debug(
            "turn %s resolved: applied=%s cash=%.2f balance_ok=%s cash_recon_ok=%s",
            after.turn_no, applied, snapshot.cash_close, snapshot.balance_ok, snapshot.cash_recon_ok,
        )
        return TurnResult(
            turn_no=after.turn_no,
            state_before=state,
            state_after=after,
            declaration=declaration,
            evaluation=ev,
            deltas=dict(raw),
            applied_deltas=applied,
            financials=snapshot,
            explainers=tuple(explainers),
            rng_event=rng_event,
        )


DEFAULT_ENGINE = TurnEngine()


def resolve_turn(
    state: CompanyState,
    declaration: str,
    ev: EvaluatorOutput,
    rng_event: Optional[RngEvent] = None,
    caps: Caps = DEFAULT_CAPS,
) -> TurnResult:
    engine = DEFAULT_ENGINE if caps == DEFAULT_ENGINE.caps else TurnEngine(caps=caps)
    return engine.resolve_turn(state, declaration, ev, rng_event)
