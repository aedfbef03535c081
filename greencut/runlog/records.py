from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
import json

from greencut.contracts.types import CompanyState, TurnResult

SNAPSHOT = "snapshot"
TURN_RESULT = "turn_result"
RECORD_TYPES = (SNAPSHOT, TURN_RESULT)


@dataclass(frozen=True)
class LogRecord:
    timestamp: float
    run_id: str
    turn_no: int
    type: str  # snapshot|turn_result
    payload: Dict[str, Any]  # state for snapshots, result for turns


def snapshot_record(run_id: str, state: CompanyState, timestamp: float) -> Dict[str, Any]:
    return {
        "timestamp": timestamp,
        "runId": run_id,
        "turn_no": state.turn_no,
        "type": SNAPSHOT,
        "state": state.to_dict(),
    }


def turn_result_record(run_id: str, result: TurnResult, timestamp: float) -> Dict[str, Any]:
    return {
        "timestamp": timestamp,
        "runId": run_id,
        "turn_no": result.turn_no,
        "type": TURN_RESULT,
        "result": result.to_dict(),
    }


def dumps_record(record: Dict[str, Any]) -> str:
    """One log line (newline-terminated)."""
    return json.dumps(record) + "\n"


def parse_log(lines: Iterable[str], run_id: Optional[str] = None) -> List[LogRecord]:
    """Parse JSONL lines into records, optionally keeping one run.

    Blank lines are skipped. Malformed JSON or an unknown record type raises
    ValueError naming the 1-based line number.
    """
    out: List[LogRecord] = []
    for n, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"line {n}: invalid JSON ({e.msg})") from e
        kind = obj.get("type") if isinstance(obj, dict) else None
        if kind not in RECORD_TYPES:
            raise ValueError(f"line {n}: unknown record type {kind!r}")
        payload = obj.get("state") if kind == SNAPSHOT else obj.get("result")
        if not isinstance(payload, dict):
            raise ValueError(f"line {n}: {kind} record has no payload")
        rid = str(obj.get("runId") or "")
        if run_id is not None and rid != run_id:
            continue
        out.append(LogRecord(
            timestamp=float(obj.get("timestamp") or 0),
            run_id=rid,
            turn_no=int(obj.get("turn_no") or 0),
            type=kind,
            payload=payload,
        ))
    return out
