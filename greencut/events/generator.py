from __future__ import annotations
from dataclasses import replace
from typing import Any, List, Tuple
import hashlib
import json
import logging
import math

from greencut.contracts.types import ActiveEvent, CompanyState, RngEvent, RISK_CATEGORIES
from greencut.events.tables import SHOCK_TABLE, REWARD_TABLE, EffectEntry

logger = logging.getLogger(__name__)

MAX_SHOCK_PRESSURE = 20
LOW_MORALE = 60.0
HIGH_BACKLOG = 8000.0
LOW_CASH_M = 5.0  # millions
ELEVATED_TAIL_RISK = 20.0
MAX_ACTIVE_EVENTS = 5


def _canonical(obj: Any) -> Any:
    # ints and floats hash alike so 75 and 75.0 give the same event
    if isinstance(obj, bool) or obj is None or isinstance(obj, str):
        return obj
    if isinstance(obj, (int, float)):
        return float(obj)
    if isinstance(obj, dict):
        return {str(k): _canonical(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_canonical(v) for v in obj]
    return str(obj)


def canonical_dumps(obj: Any) -> str:
    """Key-order independent JSON for a plain dict/list/number payload."""
    return json.dumps(_canonical(obj), sort_keys=True, separators=(",", ":"))


def canonical_json(state: CompanyState) -> str:
    return canonical_dumps(state.to_dict())


def stable_hash(text: str, salt: str = "") -> int:
    """Deterministic 64-bit integer from text; salt separates independent draws."""
    digest = hashlib.sha256(f"{salt}|{text}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def roll_1_100(seed_text: str, salt: str) -> int:
    return stable_hash(seed_text, salt) % 100 + 1


def state_cash_m(state: CompanyState) -> float:
    # rough runway conversion when no P&L summary has been computed yet
    return state.pnl.cash if state.pnl is not None else state.cash_runway * 0.5


def shock_pressure(state: CompanyState) -> int:
    pressure = math.floor(state.flags.pressure_sum() * 20 + 0.5)  # half rounds up
    if state.morale < LOW_MORALE:
        pressure += 5
    if state.backlog > HIGH_BACKLOG:
        pressure += 5
    if state_cash_m(state) < LOW_CASH_M:
        pressure += 5
    return min(int(pressure), MAX_SHOCK_PRESSURE)


def tier_from_roll(roll: int) -> int:
    if roll <= 40:
        return 0
    if roll <= 80:
        return 1
    if roll <= 96:
        return 2
    return 3


def event_hints(state: CompanyState, category: str) -> Tuple[str, ...]:
    hints: List[str] = []
    if state.flags.pressure(category) > 0.1:
        hints.append(f"{category}_pressure")
    if state.morale < LOW_MORALE:
        hints.append("morale_low")
    if state.backlog > HIGH_BACKLOG:
        hints.append("backlog_high")
    if state_cash_m(state) < LOW_CASH_M:
        hints.append("cash_tight")
    if state.tail_risk > ELEVATED_TAIL_RISK:
        hints.append("tail_risk_elevated")
    return tuple(hints)


def _to_event(roll: int, category: str, tier: int, entry: EffectEntry, hints: Tuple[str, ...]) -> RngEvent:
    return RngEvent(
        roll=roll,
        event_type=category,
        tier=tier,
        name=entry.name,
        effects=entry.effects,
        flag_bump=entry.flag_bump,
        tail_risk_bump=entry.tail_risk_bump,
        hints=hints,
    )


def generate_event_pair(state: CompanyState, turn_index: int) -> Tuple[RngEvent, RngEvent]:
    """Draw the turn's shock and its parallel reward.

    Both draws come from salted hashes of the canonical state plus turn index,
    so identical inputs always give identical events. Shock pressure raises the
    shock roll (capped at 100) before it maps to a tier; the reward roll is
    used as drawn. Categories are picked by separate hashes over the closed
    category tuple.
    """
    seed_text = canonical_json(state) + str(turn_index)
    pressure = shock_pressure(state)

    shock_roll = roll_1_100(seed_text, "shock")
    reward_roll = roll_1_100(seed_text, "reward")
    shock_tier = tier_from_roll(min(100, shock_roll + pressure))
    reward_tier = tier_from_roll(reward_roll)

    n = len(RISK_CATEGORIES)
    shock_cat = RISK_CATEGORIES[stable_hash(seed_text, "shock_category") % n]
    reward_cat = RISK_CATEGORIES[stable_hash(seed_text, "reward_category") % n]

    shock = _to_event(shock_roll, shock_cat, shock_tier, SHOCK_TABLE[(shock_cat, shock_tier)],
                      event_hints(state, shock_cat))
    reward = _to_event(reward_roll, reward_cat, reward_tier, REWARD_TABLE[(reward_cat, reward_tier)], ())
    logger.debug(
        "turn %s: shock %s/t%s roll=%s pressure=%s; reward %s/t%s",
        turn_index, shock_cat, shock_tier, shock_roll, pressure, reward_cat, reward_tier,
    )
    return shock, reward


def generate_event(state: CompanyState, turn_index: int) -> RngEvent:
    """The turn's surfaced event. The reward draw is tracked but not surfaced."""
    shock, _ = generate_event_pair(state, turn_index)
    return shock


def record_event(state: CompanyState, event: RngEvent) -> CompanyState:
    """Book a surfaced shock onto the state: tail risk, category pressure, active list.

    Decay class is tagged only; no decay is applied here.
    """
    tail_risk = min(100.0, max(0.0, state.tail_risk + event.tail_risk_bump))
    flags = state.flags
    if event.event_type in RISK_CATEGORIES:
        bumped = min(1.0, max(0.0, flags.pressure(event.event_type) + event.flag_bump))
        flags = replace(flags, **{event.event_type: bumped})
    shocks = state.active_shocks
    if event.tier >= 1:
        active = ActiveEvent(
            category=event.event_type,
            tier=event.tier,
            name=event.name,
            effects=event.effects,
            decay="slow" if event.tier >= 3 else "fast",
        )
        shocks = (shocks + (active,))[-MAX_ACTIVE_EVENTS:]
    return replace(state, tail_risk=tail_risk, flags=flags, active_shocks=shocks)
