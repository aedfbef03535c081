from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Tuple


DIRECTIONS = ("up", "down", "none")
SYNERGIES = ("aligned", "undermined", "neutral")

# Closed category set; selection is by index into this tuple.
RISK_CATEGORIES: Tuple[str, ...] = (
    "supply", "labor", "quality", "competition", "finance", "regulation", "tech", "weather",
)

# Evaluator signal keys, in composition order
SIGNAL_KEYS: Tuple[str, ...] = ("morale", "credibility", "backlog_pressure", "service_risk")

# Soft KPI keys carried in delta maps
METRIC_KEYS: Tuple[str, ...] = ("morale", "credibility", "backlog", "service", "share", "cash_runway")


def _num(d: Dict[str, Any], key: str, default: float = 0.0) -> float:
    v = d.get(key)
    return float(v) if v is not None else float(default)


def _strs(v: Any) -> Tuple[str, ...]:
    return tuple(str(x) for x in (v or ()))


@dataclass(frozen=True)
class Caps:
    """Per-turn magnitude limits. Immutable per engine instance."""
    morale: float = 3.0
    credibility: float = 2.0
    service_risk: float = 0.6
    backlog_pressure: float = 1.0


DEFAULT_CAPS = Caps()


@dataclass(frozen=True)
class Signal:
    dir: str = "none"  # up|down|none
    strength: float = 0.0  # nominally 0..1

    @property
    def sign(self) -> int:
        return 1 if self.dir == "up" else -1 if self.dir == "down" else 0

    @property
    def signed(self) -> float:
        return self.sign * self.strength

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> "Signal":
        if not d:
            return Signal()
        direction = d.get("dir") or d.get("direction") or "none"
        return Signal(dir=str(direction), strength=_num(d, "strength"))


@dataclass(frozen=True)
class SignalSet:
    morale: Signal = field(default_factory=Signal)
    credibility: Signal = field(default_factory=Signal)
    backlog_pressure: Signal = field(default_factory=Signal)
    service_risk: Signal = field(default_factory=Signal)

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> "SignalSet":
        d = d or {}
        return SignalSet(**{k: Signal.from_dict(d.get(k)) for k in SIGNAL_KEYS})


@dataclass(frozen=True)
class ImpactChannels:
    """Partial signal set echoed back for the turn's event; absent channels are None."""
    morale: Optional[Signal] = None
    credibility: Optional[Signal] = None
    backlog_pressure: Optional[Signal] = None
    service_risk: Optional[Signal] = None

    def present(self) -> Dict[str, Signal]:
        out: Dict[str, Signal] = {}
        for k in SIGNAL_KEYS:
            s = getattr(self, k)
            if s is not None:
                out[k] = s
        return out

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> "ImpactChannels":
        d = d or {}
        return ImpactChannels(**{k: Signal.from_dict(d[k]) for k in SIGNAL_KEYS if d.get(k)})


@dataclass(frozen=True)
class Flags:
    # Legacy boolean flags
    supply_fragile: bool = False
    labor_tense: bool = False
    quality_watch: bool = False
    tail_risk: bool = False
    # Continuous pressure per risk category, 0..1
    supply: float = 0.10
    labor: float = 0.05
    quality: float = 0.0
    competition: float = 0.10
    finance: float = 0.0
    regulation: float = 0.0
    tech: float = 0.05
    weather: float = 0.05

    def pressure(self, category: str) -> float:
        return float(getattr(self, category)) if category in RISK_CATEGORIES else 0.0

    def pressure_sum(self) -> float:
        return sum(self.pressure(c) for c in RISK_CATEGORIES)

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> "Flags":
        d = d or {}
        base = Flags()
        kwargs: Dict[str, Any] = {
            k: bool(d.get(k, getattr(base, k)))
            for k in ("supply_fragile", "labor_tense", "quality_watch", "tail_risk")
        }
        for c in RISK_CATEGORIES:
            kwargs[c] = _num(d, c, getattr(base, c))
        return Flags(**kwargs)


@dataclass(frozen=True)
class EventEffects:
    revenue_delta: float = 0.0  # millions
    cogs_delta: float = 0.0
    opex_delta: float = 0.0
    cash_delta: float = 0.0
    share_delta: float = 0.0  # share points
    nps_delta: float = 0.0
    morale_delta: float = 0.0
    backlog_delta: float = 0.0  # units
    notes: str = ""

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> "EventEffects":
        d = d or {}
        nums = {k: _num(d, k) for k in (
            "revenue_delta", "cogs_delta", "opex_delta", "cash_delta",
            "share_delta", "nps_delta", "morale_delta", "backlog_delta",
        )}
        return EventEffects(notes=str(d.get("notes") or ""), **nums)


@dataclass(frozen=True)
class RngEvent:
    roll: int  # raw shock roll, 1..100
    event_type: str  # risk category
    tier: int  # 0..3
    name: str
    effects: EventEffects = field(default_factory=EventEffects)
    flag_bump: float = 0.0
    tail_risk_bump: float = 0.0
    hints: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "RngEvent":
        return RngEvent(
            roll=int(d.get("roll", 1)),
            event_type=str(d.get("event_type", "")),
            tier=int(d.get("tier", 0)),
            name=str(d.get("name", "")),
            effects=EventEffects.from_dict(d.get("effects")),
            flag_bump=_num(d, "flag_bump"),
            tail_risk_bump=_num(d, "tail_risk_bump"),
            hints=_strs(d.get("hints")),
        )


@dataclass(frozen=True)
class ActiveEvent:
    category: str
    tier: int
    name: str
    effects: EventEffects
    decay: str  # slow|fast

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ActiveEvent":
        return ActiveEvent(
            category=str(d.get("category", "")),
            tier=int(d.get("tier", 0)),
            name=str(d.get("name", "")),
            effects=EventEffects.from_dict(d.get("effects")),
            decay=str(d.get("decay", "fast")),
        )


@dataclass(frozen=True)
class PnLSummary:
    """State-level P&L in millions."""
    revenue: float = 12.0
    cogs: float = 7.2
    gm_percent: float = 40.0
    opex: float = 3.8
    net: float = 1.0
    cash: float = 7.5

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "PnLSummary":
        base = PnLSummary()
        return PnLSummary(**{k: _num(d, k, getattr(base, k)) for k in (
            "revenue", "cogs", "gm_percent", "opex", "net", "cash",
        )})


@dataclass(frozen=True)
class BalanceSheet:
    cash: float
    ar: float
    inventory: float
    ppe: float
    ap: float
    debt: float
    retained_earnings: float
    other_equity: float

    def assets(self) -> float:
        return self.cash + self.ar + self.inventory + self.ppe

    def liabilities_and_equity(self) -> float:
        return self.ap + self.debt + self.other_equity + self.retained_earnings

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "BalanceSheet":
        return BalanceSheet(**{k: _num(d, k) for k in (
            "cash", "ar", "inventory", "ppe", "ap", "debt", "retained_earnings", "other_equity",
        )})


@dataclass(frozen=True)
class PnL:
    revenue: float
    cogs: float
    gross_profit: float
    opex: float
    ebitda: float
    depreciation: float
    ebit: float
    interest: float
    taxes: float
    net_income: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "PnL":
        return PnL(**{k: _num(d, k) for k in (
            "revenue", "cogs", "gross_profit", "opex", "ebitda",
            "depreciation", "ebit", "interest", "taxes", "net_income",
        )})


@dataclass(frozen=True)
class CashFlow:
    cfo: float
    cfi: float
    cff: float


@dataclass(frozen=True)
class FinancialSnapshot:
    cash_open: float
    pnl: PnL
    cashflow: CashFlow
    balance: BalanceSheet
    cash_close: float
    balance_ok: bool
    cash_recon_ok: bool
    direct_cash_spend: float = 0.0
    notes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "FinancialSnapshot":
        cf = d.get("cashflow") or {}
        return FinancialSnapshot(
            cash_open=_num(d, "cash_open"),
            pnl=PnL.from_dict(d.get("pnl") or {}),
            cashflow=CashFlow(cfo=_num(cf, "cfo"), cfi=_num(cf, "cfi"), cff=_num(cf, "cff")),
            balance=BalanceSheet.from_dict(d.get("balance") or {}),
            cash_close=_num(d, "cash_close"),
            balance_ok=bool(d.get("balance_ok", False)),
            cash_recon_ok=bool(d.get("cash_recon_ok", False)),
            direct_cash_spend=_num(d, "direct_cash_spend"),
            notes=_strs(d.get("notes")),
        )


@dataclass(frozen=True)
class CompanyState:
    turn_no: int
    morale: float  # 0..100
    credibility: float  # 0..100
    backlog: float  # units, >= 0
    service: float  # 0..100
    share: float  # >= 0
    cash_runway: float  # months, >= 0
    flags: Flags = field(default_factory=Flags)
    period: Optional[str] = None
    pnl: Optional[PnLSummary] = None
    financials: Optional[FinancialSnapshot] = None
    tail_risk: float = 5.0  # 0..100
    active_shocks: Tuple[ActiveEvent, ...] = ()
    active_rewards: Tuple[ActiveEvent, ...] = ()
    recent_moves: Tuple[str, ...] = ()  # at most 2 retained

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "CompanyState":
        pnl = d.get("pnl")
        fin = d.get("financials")
        return CompanyState(
            turn_no=int(d.get("turn_no", 0)),
            morale=_num(d, "morale"),
            credibility=_num(d, "credibility"),
            backlog=_num(d, "backlog"),
            service=_num(d, "service"),
            share=_num(d, "share"),
            cash_runway=_num(d, "cash_runway"),
            flags=Flags.from_dict(d.get("flags")),
            period=d.get("period"),
            pnl=PnLSummary.from_dict(pnl) if pnl else None,
            financials=FinancialSnapshot.from_dict(fin) if fin else None,
            tail_risk=_num(d, "tail_risk", 5.0),
            active_shocks=tuple(ActiveEvent.from_dict(x) for x in d.get("active_shocks") or ()),
            active_rewards=tuple(ActiveEvent.from_dict(x) for x in d.get("active_rewards") or ()),
            recent_moves=_strs(d.get("recent_moves")),
        )


@dataclass(frozen=True)
class Assessment:
    intent: Tuple[str, ...] = ()
    targets: Tuple[str, ...] = ()
    tone: str = ""
    fit_reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EventEcho:
    roll: int = 1
    event_type: str = "none"
    impact_channels: ImpactChannels = field(default_factory=ImpactChannels)
    severity_note: str = ""


@dataclass(frozen=True)
class Integration:
    synergy: str = "neutral"  # aligned|undermined|neutral
    narrative_hook: str = ""


@dataclass(frozen=True)
class PolicyCheck:
    oob: bool = False
    violations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DirectCashSpend:
    """Structured spending instruction: an absolute amount or a fraction (0..1) of cash."""
    amount: Optional[float] = None
    percentage: Optional[float] = None

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> Optional["DirectCashSpend"]:
        if not d:
            return None
        amt, pct = d.get("amount"), d.get("percentage")
        return DirectCashSpend(
            amount=float(amt) if amt is not None else None,
            percentage=float(pct) if pct is not None else None,
        )


@dataclass(frozen=True)
class EvaluatorOutput:
    """Normalized analysis of one declaration; produced upstream, read-only here."""
    signals: SignalSet = field(default_factory=SignalSet)
    assessment: Assessment = field(default_factory=Assessment)
    event: EventEcho = field(default_factory=EventEcho)
    integrated: Integration = field(default_factory=Integration)
    nonsense_penalty: float = 0.0  # 0..1
    policy: PolicyCheck = field(default_factory=PolicyCheck)
    rationale: str = ""
    direct_cash_spend: Optional[DirectCashSpend] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["penalties"] = {"nonsense_penalty": d.pop("nonsense_penalty")}
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "EvaluatorOutput":
        a = d.get("assessment") or {}
        ev = d.get("event") or {}
        integ = d.get("integrated") or {}
        pol = d.get("policy") or {}
        pen = d.get("penalties") or {}
        return EvaluatorOutput(
            signals=SignalSet.from_dict(d.get("signals")),
            assessment=Assessment(
                intent=_strs(a.get("intent")),
                targets=_strs(a.get("targets")),
                tone=str(a.get("tone") or ""),
                fit_reasons=_strs(a.get("fit_reasons")),
            ),
            event=EventEcho(
                roll=int(ev.get("roll", 1)),
                event_type=str(ev.get("event_type") or "none"),
                impact_channels=ImpactChannels.from_dict(ev.get("impact_channels")),
                severity_note=str(ev.get("severity_note") or ""),
            ),
            integrated=Integration(
                synergy=str(integ.get("synergy") or "neutral"),
                narrative_hook=str(integ.get("narrative_hook") or ""),
            ),
            nonsense_penalty=_num(pen, "nonsense_penalty"),
            policy=PolicyCheck(oob=bool(pol.get("oob", False)), violations=_strs(pol.get("violations"))),
            rationale=str(d.get("rationale") or ""),
            direct_cash_spend=DirectCashSpend.from_dict(d.get("direct_cash_spend")),
        )


@dataclass(frozen=True)
class TurnResult:
    turn_no: int
    state_before: CompanyState
    state_after: CompanyState
    declaration: str
    evaluation: EvaluatorOutput
    deltas: Dict[str, float]
    applied_deltas: Dict[str, float]
    financials: FinancialSnapshot
    explainers: Tuple[str, ...]
    rng_event: Optional[RngEvent] = None
    # Filled by the narrative collaborator after the engine returns
    narrative: str = ""
    quotes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        ev = self.evaluation.to_dict()
        return {
            "turn_no": self.turn_no,
            "state_before": self.state_before.to_dict(),
            "state_after": self.state_after.to_dict(),
            "declaration": self.declaration,
            "assessment": ev["assessment"],
            "signals": ev["signals"],
            "event": ev["event"],
            "integrated": ev["integrated"],
            "penalties": ev["penalties"],
            "policy": ev["policy"],
            "rationale": ev["rationale"],
            "direct_cash_spend": ev["direct_cash_spend"],
            "rng_event": self.rng_event.to_dict() if self.rng_event else None,
            "deltas": dict(self.deltas),
            "applied_deltas": dict(self.applied_deltas),
            "financials": self.financials.to_dict(),
            "explainers": {"finance": list(self.explainers)},
            "narrative": self.narrative,
            "quotes": list(self.quotes),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TurnResult":
        rng = d.get("rng_event")
        return TurnResult(
            turn_no=int(d.get("turn_no", 0)),
            state_before=CompanyState.from_dict(d.get("state_before") or {}),
            state_after=CompanyState.from_dict(d.get("state_after") or {}),
            declaration=str(d.get("declaration") or ""),
            evaluation=EvaluatorOutput.from_dict(d),
            deltas={k: float(v) for k, v in (d.get("deltas") or {}).items()},
            applied_deltas={k: float(v) for k, v in (d.get("applied_deltas") or {}).items()},
            financials=FinancialSnapshot.from_dict(d.get("financials") or {}),
            explainers=_strs((d.get("explainers") or {}).get("finance")),
            rng_event=RngEvent.from_dict(rng) if rng else None,
            narrative=str(d.get("narrative") or ""),
            quotes=_strs(d.get("quotes")),
        )
