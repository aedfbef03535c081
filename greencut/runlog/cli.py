import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from greencut.config.env import get_caps_config, get_finance_config, get_log_config
from greencut.turn.resolver import TurnEngine
from .records import parse_log
from .replay import replay


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m greencut.runlog.cli <run.jsonl> [run_id]")
        sys.exit(2)
    log_cfg = get_log_config()
    logging.basicConfig(level=log_cfg.level, format=log_cfg.fmt)
    path = Path(sys.argv[1])
    run_id = sys.argv[2] if len(sys.argv) > 2 else None
    try:
        records = parse_log(path.read_text().splitlines(), run_id=run_id)
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(2)
    engine = TurnEngine(caps=get_caps_config(), params=get_finance_config())
    checks = replay(records, engine)
    print(json.dumps([asdict(c) for c in checks], indent=2))
    sys.exit(0 if all(c.ok for c in checks) else 1)


if __name__ == "__main__":
    main()
