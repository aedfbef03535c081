from __future__ import annotations
from dataclasses import replace
from typing import Dict, Mapping
import math

from greencut.contracts.types import Caps, CompanyState, EvaluatorOutput, Signal, METRIC_KEYS

# Backlog moves in units rather than capped points
CEO_BACKLOG_UNITS = 250
EVENT_BACKLOG_UNITS = 200
CEO_FRAGILE_MULT = 1.2
EVENT_FRAGILE_MULT = 1.3
EVENT_WEIGHT = 0.8

# evaluator signal key -> (state metric, cap attribute)
_CHANNELS = {
    "morale": ("morale", "morale"),
    "credibility": ("credibility", "credibility"),
    "backlog_pressure": ("backlog", "backlog_pressure"),
    "service_risk": ("service", "service_risk"),
}


def _zero() -> Dict[str, float]:
    return {k: 0.0 for k in METRIC_KEYS}


def apply_context_mods(state: CompanyState) -> CompanyState:
    """Pre-turn modifiers applied to the state itself, once per turn."""
    morale, credibility = state.morale, state.credibility
    if state.flags.labor_tense:
        morale = min(100.0, morale * 1.2)
        credibility = max(0.0, credibility * 0.9)
    if morale > 85:
        morale = max(0.0, morale * 0.8)
    return replace(state, morale=morale, credibility=credibility)


def _backlog_units(signal: Signal, units: int, fragile_mult: float, fragile: bool) -> float:
    delta = math.floor(signal.strength * units + 0.5) * signal.sign  # half rounds up
    return delta * (fragile_mult if fragile else 1.0)


def ceo_layer(ev: EvaluatorOutput, state: CompanyState, caps: Caps) -> Dict[str, float]:
    deltas = _zero()
    fragile = state.flags.supply_fragile
    for key, (metric, cap_name) in _CHANNELS.items():
        sig: Signal = getattr(ev.signals, key)
        if sig.dir == "none":
            continue
        if metric == "backlog":
            deltas[metric] = _backlog_units(sig, CEO_BACKLOG_UNITS, CEO_FRAGILE_MULT, fragile)
        else:
            deltas[metric] = sig.signed * getattr(caps, cap_name)
    return deltas


def event_layer(ev: EvaluatorOutput, state: CompanyState, caps: Caps) -> Dict[str, float]:
    deltas = _zero()
    fragile = state.flags.supply_fragile
    for key, sig in ev.event.impact_channels.present().items():
        if sig.dir == "none":
            continue
        metric, cap_name = _CHANNELS[key]
        if metric == "backlog":
            deltas[metric] += _backlog_units(sig, EVENT_BACKLOG_UNITS, EVENT_FRAGILE_MULT, fragile)
        else:
            deltas[metric] += sig.signed * getattr(caps, cap_name) * EVENT_WEIGHT
    return deltas


def penalty_layer(ev: EvaluatorOutput, state: CompanyState, caps: Caps) -> Dict[str, float]:
    deltas = _zero()
    pen = ev.nonsense_penalty
    if pen <= 0:
        return deltas
    deltas["credibility"] = -pen * caps.credibility * 0.2
    if state.credibility < 50:
        deltas["morale"] = -pen * caps.morale * 0.1
    return deltas


def apply_signals(ev: EvaluatorOutput, state: CompanyState, caps: Caps) -> Dict[str, float]:
    """Raw (uncapped) per-metric deltas: CEO layer, then event layer, then penalty layer.

    All layers are additive, so the order only matters to readers of the
    intermediate layers. Every metric key is present in the result.
    """
    total = _zero()
    for layer in (ceo_layer, event_layer, penalty_layer):
        for k, v in layer(ev, state, caps).items():
            total[k] += v
    return total


def metric_caps(caps: Caps) -> Dict[str, float]:
    # share and cash_runway borrow the backlog-pressure cap
    return {
        "morale": caps.morale,
        "credibility": caps.credibility,
        "service": caps.service_risk,
        "backlog": caps.backlog_pressure * CEO_BACKLOG_UNITS,
        "share": caps.backlog_pressure,
        "cash_runway": caps.backlog_pressure,
    }


def clamp_deltas(deltas: Mapping[str, float], caps: Caps) -> Dict[str, float]:
    bounds = metric_caps(caps)
    applied = _zero()
    for k in METRIC_KEYS:
        cap = bounds[k]
        applied[k] = max(-cap, min(cap, float(deltas.get(k, 0.0))))
    return applied
