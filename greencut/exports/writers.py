from __future__ import annotations
from typing import List, Dict, Any, Iterable
import csv
import io

from greencut.contracts.types import TurnResult

SCHEMAS = {
    "income_statement": [
        "turn_no", "revenue", "cogs", "gross_profit", "opex", "ebitda", "depreciation", "ebit", "interest", "taxes", "net_income"
    ],
    "cash_flow": [
        "turn_no", "cash_open", "cfo", "cfi", "cff", "direct_cash_spend", "cash_close", "cash_recon_ok"
    ],
    "balance_sheet": [
        "turn_no", "cash", "ar", "inventory", "ppe", "ap", "debt", "retained_earnings", "other_equity", "balance_ok"
    ],
}


def write_csv(rows: Iterable[Dict[str, Any]], columns: List[str]) -> str:
    buf = io.StringIO()
    w = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    w.writeheader()
    for r in rows:
        w.writerow({k: r.get(k) for k in columns})
    return buf.getvalue()


def statement_rows(results: Iterable[TurnResult]) -> List[Dict[str, Any]]:
    """Flatten each turn's snapshot into one row carrying every statement line."""
    rows: List[Dict[str, Any]] = []
    for r in results:
        f = r.financials
        rows.append({
            "turn_no": r.turn_no,
            **vars(f.pnl),
            **vars(f.cashflow),
            **vars(f.balance),
            "cash_open": f.cash_open,
            "cash_close": f.cash_close,
            "direct_cash_spend": f.direct_cash_spend,
            "balance_ok": f.balance_ok,
            "cash_recon_ok": f.cash_recon_ok,
        })
    return rows


def write_income_statement(results: Iterable[TurnResult]) -> str:
    return write_csv(statement_rows(results), SCHEMAS["income_statement"])


def write_cash_flow(results: Iterable[TurnResult]) -> str:
    return write_csv(statement_rows(results), SCHEMAS["cash_flow"])


def write_balance_sheet(results: Iterable[TurnResult]) -> str:
    return write_csv(statement_rows(results), SCHEMAS["balance_sheet"])
