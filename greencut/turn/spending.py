from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Pattern, Tuple
import re

from greencut.contracts.types import DirectCashSpend, EvaluatorOutput

_TARGETS = r"(?:employee|staff|bonus|bonuses)"

# Most specific first: absolute amounts, then percentages of cash.
_AMOUNT_PATTERNS: Tuple[Tuple[Pattern[str], float], ...] = (
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:million|m)\s*(?:in|on|for|to)\s*" + _TARGETS), 1_000_000),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:thousand|k)\s*(?:in|on|for|to)\s*" + _TARGETS), 1_000),
    (re.compile(r"(\d+(?:\.\d+)?)\s*(?:billion|b)\s*(?:in|on|for|to)\s*" + _TARGETS), 1_000_000_000),
)
_PERCENT_PATTERN = re.compile(r"(?:spend|use|give)\s*(\d+(?:\.\d+)?)%\s*(?:of\s*)?(?:our\s*)?(?:cash|money)")
_ALL_CASH_PATTERN = re.compile(r"(?:spend|use|give)\s*(?:all|100%)\s*(?:of\s*)?(?:our\s*)?(?:cash|money)")


@dataclass(frozen=True)
class ResolvedSpend:
    amount: float  # currency units
    source: str  # structured|text


def detect_cash_spending(declaration: str) -> Optional[DirectCashSpend]:
    """Scan declaration text for a direct spending instruction.

    "$2M in bonuses" -> amount 2,000,000; "spend 10% of our cash" ->
    percentage 0.10; "use all of our cash" -> percentage 1.0.
    """
    text = (declaration or "").lower()
    for pattern, multiplier in _AMOUNT_PATTERNS:
        m = pattern.search(text)
        if m:
            return DirectCashSpend(amount=float(m.group(1)) * multiplier)
    m = _PERCENT_PATTERN.search(text)
    if m:
        return DirectCashSpend(percentage=min(1.0, float(m.group(1)) / 100.0))
    if _ALL_CASH_PATTERN.search(text):
        return DirectCashSpend(percentage=1.0)
    return None


def resolve_direct_spend(ev: EvaluatorOutput, declaration: str, pre_turn_cash: float) -> Optional[ResolvedSpend]:
    """Currency amount of direct spending for the turn, or None.

    The structured field wins; text detection is the fallback. Percentages
    resolve against the pre-turn cash balance.
    """
    source = "structured"
    spend = ev.direct_cash_spend
    if spend is None or (spend.amount is None and spend.percentage is None):
        spend = detect_cash_spending(declaration)
        source = "text"
    if spend is None:
        return None
    if spend.amount is not None:
        amount = spend.amount
    else:
        amount = max(0.0, pre_turn_cash) * min(1.0, max(0.0, spend.percentage or 0.0))
    if amount <= 0:
        return None
    return ResolvedSpend(amount=amount, source=source)
