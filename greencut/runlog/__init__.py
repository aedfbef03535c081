"""Run log: JSONL record shapes and replay verification.

- records.py: snapshot / turn_result records, line encoding and parsing
- replay.py: chain continuity and determinism checks over a parsed log
- cli.py: `python -m greencut.runlog.cli <run.jsonl> [run_id]`
"""
