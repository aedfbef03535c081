from __future__ import annotations
from typing import Any, Dict, Iterable
import math

from greencut.contracts.types import DIRECTIONS, SIGNAL_KEYS, SYNERGIES, RISK_CATEGORIES

FLAG_KEYS = ("supply_fragile", "labor_tense", "quality_watch", "tail_risk")
BALANCE_KEYS = ("cash", "ar", "inventory", "ppe", "ap", "debt", "retained_earnings", "other_equity")


def _is_num(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _require(d: Dict[str, Any], keys: Iterable[str], where: str) -> None:
    if not isinstance(d, dict):
        raise ValueError(f"{where} must be an object")
    missing = [k for k in keys if k not in d]
    if missing:
        raise ValueError(f"{where} missing required field(s): {', '.join(missing)}")


def _check_object(v: Any, where: str) -> None:
    if not isinstance(v, dict):
        raise ValueError(f"{where} must be an object")


def _check_range(v: Any, lo: float, hi: float, where: str) -> None:
    if not _is_num(v):
        raise ValueError(f"{where} must be a number")
    if not (lo <= v <= hi):
        raise ValueError(f"{where} must be between {lo} and {hi}")


def _check_numbers(d: Dict[str, Any], where: str) -> None:
    for k, v in d.items():
        if v is not None and not _is_num(v):
            raise ValueError(f"{where}.{k} must be a number")


def _check_str_list(v: Any, where: str) -> None:
    if not isinstance(v, (list, tuple)) or not all(isinstance(x, str) for x in v):
        raise ValueError(f"{where} must be a list of strings")


def validate_signal(d: Any, where: str) -> None:
    _require(d, ("dir", "strength"), where)
    if d["dir"] not in DIRECTIONS:
        raise ValueError(f"{where}.dir must be one of {'|'.join(DIRECTIONS)}")
    _check_range(d["strength"], 0.0, 1.0, f"{where}.strength")


def validate_evaluator_output(d: Any) -> None:
    """Strict schema check for the analysis record before it reaches the engine.

    Mirrors the upstream contract: every block present, directions from the
    closed set, strengths and penalty within 0..1, synergy from the closed set.
    The optional direct_cash_spend block carries exactly one of amount (>= 0)
    or percentage (0..1).
    """
    _require(d, ("assessment", "signals", "event", "integrated", "penalties", "policy", "rationale"), "evaluator_output")

    a = d["assessment"]
    _require(a, ("intent", "targets", "tone", "fit_reasons"), "assessment")
    for k in ("intent", "targets", "fit_reasons"):
        _check_str_list(a[k], f"assessment.{k}")
    if not isinstance(a["tone"], str):
        raise ValueError("assessment.tone must be a string")

    _require(d["signals"], SIGNAL_KEYS, "signals")
    for k in SIGNAL_KEYS:
        validate_signal(d["signals"][k], f"signals.{k}")

    ev = d["event"]
    _require(ev, ("roll", "event_type", "impact_channels", "severity_note"), "event")
    if not _is_num(ev["roll"]):
        raise ValueError("event.roll must be a number")
    if not isinstance(ev["event_type"], str):
        raise ValueError("event.event_type must be a string")
    if not isinstance(ev["impact_channels"], dict):
        raise ValueError("event.impact_channels must be an object")
    for k, v in ev["impact_channels"].items():
        if k not in SIGNAL_KEYS:
            raise ValueError(f"event.impact_channels has unknown channel '{k}'")
        if v is not None:
            validate_signal(v, f"event.impact_channels.{k}")

    integ = d["integrated"]
    _require(integ, ("synergy", "narrative_hook"), "integrated")
    if integ["synergy"] not in SYNERGIES:
        raise ValueError(f"integrated.synergy must be one of {'|'.join(SYNERGIES)}")

    _require(d["penalties"], ("nonsense_penalty",), "penalties")
    _check_range(d["penalties"]["nonsense_penalty"], 0.0, 1.0, "penalties.nonsense_penalty")

    pol = d["policy"]
    _require(pol, ("oob", "violations"), "policy")
    if not isinstance(pol["oob"], bool):
        raise ValueError("policy.oob must be a boolean")
    _check_str_list(pol["violations"], "policy.violations")

    if not isinstance(d["rationale"], str):
        raise ValueError("rationale must be a string")

    spend = d.get("direct_cash_spend")
    if spend is not None:
        if not isinstance(spend, dict):
            raise ValueError("direct_cash_spend must be an object")
        present = [k for k in ("amount", "percentage") if spend.get(k) is not None]
        if len(present) != 1:
            raise ValueError("direct_cash_spend requires exactly one of amount or percentage")
        if present[0] == "amount":
            _check_range(spend["amount"], 0.0, math.inf, "direct_cash_spend.amount")
        else:
            _check_range(spend["percentage"], 0.0, 1.0, "direct_cash_spend.percentage")


def validate_state(d: Any) -> None:
    """Schema check for a company state arriving from a caller."""
    _require(d, ("turn_no", "morale", "credibility", "backlog", "service", "share", "cash_runway", "flags"), "state")
    if not isinstance(d["turn_no"], int) or isinstance(d["turn_no"], bool) or d["turn_no"] < 0:
        raise ValueError("state.turn_no must be a non-negative integer")
    for k in ("morale", "credibility", "service"):
        _check_range(d[k], 0.0, 100.0, f"state.{k}")
    for k in ("backlog", "share", "cash_runway"):
        _check_range(d[k], 0.0, math.inf, f"state.{k}")
    flags = d["flags"]
    if not isinstance(flags, dict):
        raise ValueError("state.flags must be an object")
    for c in RISK_CATEGORIES:
        if c in flags:
            _check_range(flags[c], 0.0, 1.0, f"state.flags.{c}")
    for k in FLAG_KEYS:
        if k in flags and not isinstance(flags[k], bool):
            raise ValueError(f"state.flags.{k} must be a boolean")
    if "tail_risk" in d and d["tail_risk"] is not None:
        _check_range(d["tail_risk"], 0.0, 100.0, "state.tail_risk")
    moves = d.get("recent_moves", [])
    _check_str_list(moves, "state.recent_moves")

    pnl = d.get("pnl")
    if pnl is not None:
        _check_object(pnl, "state.pnl")
        _check_numbers(pnl, "state.pnl")
    fin = d.get("financials")
    if fin is not None:
        validate_financials(fin, "state.financials")
    for k in ("active_shocks", "active_rewards"):
        events = d.get(k)
        if events is None:
            continue
        if not isinstance(events, (list, tuple)):
            raise ValueError(f"state.{k} must be a list of objects")
        for i, e in enumerate(events):
            where = f"state.{k}[{i}]"
            _check_object(e, where)
            tier = e.get("tier")
            if tier is not None and (not isinstance(tier, int) or isinstance(tier, bool)):
                raise ValueError(f"{where}.tier must be an integer")
            effects = e.get("effects")
            if effects is not None:
                _check_object(effects, f"{where}.effects")
                _check_numbers({x: v for x, v in effects.items() if x != "notes"}, f"{where}.effects")


def validate_financials(d: Any, where: str = "financials") -> None:
    """A carried-over snapshot must hold a complete balance sheet; the next turn opens from it."""
    _check_object(d, where)
    _require(d.get("balance"), BALANCE_KEYS, f"{where}.balance")
    for k in BALANCE_KEYS:
        if not _is_num(d["balance"][k]):
            raise ValueError(f"{where}.balance.{k} must be a number")
    for block in ("pnl", "cashflow"):
        if d.get(block) is not None:
            _check_object(d[block], f"{where}.{block}")
            _check_numbers(d[block], f"{where}.{block}")
    for k in ("cash_open", "cash_close", "direct_cash_spend"):
        if d.get(k) is not None and not _is_num(d[k]):
            raise ValueError(f"{where}.{k} must be a number")
    if d.get("notes") is not None:
        _check_str_list(d["notes"], f"{where}.notes")
