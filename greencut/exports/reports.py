from __future__ import annotations
from typing import Dict

from greencut.contracts.types import FinancialSnapshot, TurnResult


def validation_report_md(snapshot: FinancialSnapshot, title: str = "Validation Report") -> str:
    checks: Dict[str, bool] = {
        "balance_identity": snapshot.balance_ok,
        "cash_reconciliation": snapshot.cash_recon_ok,
    }
    lines = [f"# {title}", ""]
    for k, ok in checks.items():
        lines.append(f"- {k}: {'PASS' if ok else 'FAIL'}")
    if snapshot.notes:
        lines.append("\n## Notes")
        for n in snapshot.notes:
            lines.append(f"- {n}")
    return "\n".join(lines) + "\n"


def turn_summary_md(result: TurnResult) -> str:
    f = result.financials
    lines = [f"# Turn {result.turn_no}", "", f"> {result.declaration}", "", "## Applied deltas"]
    for k, v in result.applied_deltas.items():
        lines.append(f"- {k}: {v:+.2f}")
    lines.append("\n## Financials")
    lines.append(f"- revenue: {f.pnl.revenue:,.0f}")
    lines.append(f"- net_income: {f.pnl.net_income:,.0f}")
    lines.append(f"- cash: {f.cash_open:,.0f} -> {f.cash_close:,.0f}")
    if result.explainers:
        lines.append("\n## Explainers")
        for e in result.explainers:
            lines.append(f"- {e}")
    return "\n".join(lines) + "\n"
