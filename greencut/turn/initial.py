from __future__ import annotations

from greencut.contracts.types import CompanyState, Flags, PnLSummary
from greencut.events.generator import stable_hash

START_PERIOD = "Sep 2025"


def create_initial_state(seed: str) -> CompanyState:
    """Seeded starting state for a new run; the same seed always gives the same state."""
    h = stable_hash(seed, "initial_state")
    return CompanyState(
        turn_no=0,
        period=START_PERIOD,
        morale=float(75 + h % 20),
        credibility=float(70 + h % 25),
        backlog=float(1000 + h % 500),
        service=float(85 + h % 15),
        share=float(100 + h % 50),
        cash_runway=float(18 + h % 12),
        flags=Flags(
            supply_fragile=h % 3 == 0,
            labor_tense=h % 4 == 0,
            quality_watch=h % 5 == 0,
            tail_risk=h % 6 == 0,
        ),
        pnl=PnLSummary(),
        tail_risk=5.0,
    )
