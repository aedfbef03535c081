from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
import logging

from greencut.contracts.types import CompanyState, TurnResult
from greencut.events.generator import canonical_dumps
from greencut.runlog.records import LogRecord, SNAPSHOT
from greencut.turn.resolver import DEFAULT_ENGINE, TurnEngine

logger = logging.getLogger(__name__)

# Parts of a turn result the engine must reproduce exactly
REPRODUCED_FIELDS = ("state_after", "deltas", "applied_deltas", "financials", "explainers")


@dataclass(frozen=True)
class ReplayCheck:
    run_id: str
    turn_no: int
    ok: bool
    reason: str = ""


def _same(a: CompanyState, b: CompanyState) -> bool:
    return canonical_dumps(a.to_dict()) == canonical_dumps(b.to_dict())


def replay(records: Iterable[LogRecord], engine: Optional[TurnEngine] = None) -> List[ReplayCheck]:
    """Re-resolve every logged turn and compare with what was recorded.

    Each turn must start from the state the previous record of the same run
    ended on, and re-running the engine on the logged inputs must reproduce
    the recorded state, deltas, financials and explainers.
    """
    engine = engine or DEFAULT_ENGINE
    last: Dict[str, CompanyState] = {}
    checks: List[ReplayCheck] = []
    for rec in records:
        if rec.type == SNAPSHOT:
            last[rec.run_id] = CompanyState.from_dict(rec.payload)
            continue
        logged = TurnResult.from_dict(rec.payload)
        prev = last.get(rec.run_id)
        last[rec.run_id] = logged.state_after
        if prev is not None and not _same(prev, logged.state_before):
            checks.append(ReplayCheck(rec.run_id, logged.turn_no, False, "state_before does not continue the previous state"))
            continue
        redo = engine.resolve_turn(logged.state_before, logged.declaration, logged.evaluation, logged.rng_event).to_dict()
        recorded = logged.to_dict()
        mismatched = [k for k in REPRODUCED_FIELDS if canonical_dumps(redo[k]) != canonical_dumps(recorded[k])]
        if mismatched:
            logger.warning("run %s turn %s: replay mismatch in %s", rec.run_id, logged.turn_no, ", ".join(mismatched))
            checks.append(ReplayCheck(rec.run_id, logged.turn_no, False, "mismatch: " + ", ".join(mismatched)))
        else:
            checks.append(ReplayCheck(rec.run_id, logged.turn_no, True))
    return checks
