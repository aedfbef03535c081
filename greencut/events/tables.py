from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Tuple

from greencut.contracts.types import EventEffects, RISK_CATEGORIES


@dataclass(frozen=True)
class EffectEntry:
    name: str
    effects: EventEffects
    flag_bump: float = 0.0
    tail_risk_bump: float = 0.0


E = EventEffects

# Tier 0 is a near miss: no P&L hit, small jitter in flags and tail risk.
_SHOCK_NEAR_MISS = {
    cat: EffectEntry(f"Thin ice ({cat})", E(notes="No immediate hit, but jitters build."), 0.02, 1)
    for cat in RISK_CATEGORIES
}

_SHOCKS = {
    ("supply", 1): EffectEntry("Port delay on batteries",
                               E(revenue_delta=-0.6, cogs_delta=0.1, backlog_delta=1200, morale_delta=-2), 0.08, 5),
    ("supply", 2): EffectEntry("Tier-2 vendor outage (motors)",
                               E(revenue_delta=-1.5, cogs_delta=0.4, backlog_delta=3000, morale_delta=-4), 0.15, 10),
    ("supply", 3): EffectEntry("Factory shutdown (safety inspection)",
                               E(revenue_delta=-3.0, cogs_delta=0.8, backlog_delta=6000, morale_delta=-8), 0.25, 15),

    ("labor", 1): EffectEntry("Skilled assembler attrition tick up",
                              E(opex_delta=0.1, cogs_delta=0.2, morale_delta=-3, backlog_delta=500), 0.07, 5),
    ("labor", 2): EffectEntry("Shift walkouts",
                              E(revenue_delta=-1.0, cogs_delta=0.3, morale_delta=-8, backlog_delta=2500), 0.12, 10),
    ("labor", 3): EffectEntry("Union strike notice",
                              E(revenue_delta=-2.0, opex_delta=0.3, morale_delta=-12, backlog_delta=5000), 0.2, 15),

    ("quality", 1): EffectEntry("Spike in warranty claims (starter cord)",
                                E(opex_delta=0.2, nps_delta=-4, share_delta=-0.2), 0.06, 4),
    ("quality", 2): EffectEntry("Limited recall (blade hub)",
                                E(revenue_delta=-0.7, opex_delta=0.6, nps_delta=-8, share_delta=-0.6), 0.12, 9),
    ("quality", 3): EffectEntry("Major recall (battery fire risk)",
                                E(revenue_delta=-2.5, opex_delta=1.2, nps_delta=-15, share_delta=-1.5), 0.25, 16),

    ("competition", 1): EffectEntry("Rival promo blitz at big-box",
                                    E(share_delta=-0.4, revenue_delta=-0.5), 0.06, 5),
    ("competition", 2): EffectEntry("Competitor exclusive shelf at key retailer",
                                    E(share_delta=-0.9, revenue_delta=-1.2), 0.1, 9),
    ("competition", 3): EffectEntry("New entrant undercuts with ultra-low price",
                                    E(share_delta=-1.5, revenue_delta=-2.0), 0.16, 12),

    ("finance", 1): EffectEntry("Credit insurer tightens terms",
                                E(cash_delta=-0.5, opex_delta=0.1), 0.05, 6),
    ("finance", 2): EffectEntry("Working capital squeeze",
                                E(cash_delta=-1.0, opex_delta=0.2, revenue_delta=-0.4), 0.1, 10),
    ("finance", 3): EffectEntry("Credit line cap reduced",
                                E(cash_delta=-2.0, revenue_delta=-0.8), 0.15, 14),

    ("regulation", 1): EffectEntry("Noise standard scrutiny", E(opex_delta=0.1), 0.04, 5),
    ("regulation", 2): EffectEntry("New emissions testing backlog",
                                   E(revenue_delta=-0.6, opex_delta=0.2), 0.08, 10),
    ("regulation", 3): EffectEntry("Sudden compliance rule change",
                                   E(revenue_delta=-1.5, opex_delta=0.7), 0.15, 15),

    ("tech", 1): EffectEntry("Firmware bug causing false error codes",
                             E(opex_delta=0.2, nps_delta=-3), 0.06, 6),
    ("tech", 2): EffectEntry("Connectivity outage in smart models",
                             E(revenue_delta=-0.5, opex_delta=0.3, nps_delta=-6), 0.1, 10),
    ("tech", 3): EffectEntry("Cyber incident at supplier",
                             E(revenue_delta=-1.5, cash_delta=-0.5, opex_delta=0.4), 0.18, 14),

    ("weather", 1): EffectEntry("Mild week reduces weekend traffic", E(revenue_delta=-0.3), 0.04, 3),
    ("weather", 2): EffectEntry("Unseasonal rains dampen sales", E(revenue_delta=-0.9), 0.08, 7),
    ("weather", 3): EffectEntry("Storm disrupts regional distribution",
                                E(revenue_delta=-1.6, backlog_delta=1000), 0.12, 10),
}

_REWARD_NEAR_MISS = {
    cat: EffectEntry(f"Quiet tailwind ({cat})", E(notes="No obvious bump, but teams feel a breeze."))
    for cat in RISK_CATEGORIES
}

_REWARDS = {
    ("supply", 1): EffectEntry("Vendor early shipment", E(revenue_delta=0.4, backlog_delta=-800)),
    ("supply", 2): EffectEntry("Bulk buy discount", E(cogs_delta=-0.4, cash_delta=-0.4)),
    ("supply", 3): EffectEntry("Windfall allocation ahead of rivals",
                               E(revenue_delta=1.2, cogs_delta=-0.3, backlog_delta=-1500)),

    ("labor", 1): EffectEntry("Productivity surge", E(cogs_delta=-0.2, morale_delta=3)),
    ("labor", 2): EffectEntry("Referral hiring wave", E(opex_delta=0.1, backlog_delta=-1200, morale_delta=4)),
    ("labor", 3): EffectEntry("Breakthrough training effect",
                              E(cogs_delta=-0.5, backlog_delta=-2000, morale_delta=6)),

    ("quality", 1): EffectEntry("Glowing third-party review", E(share_delta=0.3, nps_delta=4)),
    ("quality", 2): EffectEntry("Warranty claims drop", E(opex_delta=-0.3, nps_delta=5)),
    ("quality", 3): EffectEntry("Industry award for reliability", E(share_delta=0.8, nps_delta=8)),

    ("competition", 1): EffectEntry("Rival stumbles on logistics", E(share_delta=0.3, revenue_delta=0.4)),
    ("competition", 2): EffectEntry("Exclusive endcap placement", E(share_delta=0.7, revenue_delta=0.9)),
    ("competition", 3): EffectEntry("Retailer co-op funds bonus",
                                    E(opex_delta=-0.5, revenue_delta=1.0, cash_delta=0.3)),

    ("finance", 1): EffectEntry("FX tailwind", E(revenue_delta=0.3)),
    ("finance", 2): EffectEntry("Tax credit approval", E(cash_delta=0.8)),
    ("finance", 3): EffectEntry("Favorable credit facility", E(cash_delta=1.5)),

    ("regulation", 1): EffectEntry("Grant for electrification", E(cash_delta=0.5)),
    ("regulation", 2): EffectEntry("Certification fast-track", E(revenue_delta=0.6, backlog_delta=-800)),
    ("regulation", 3): EffectEntry("Tariff relief", E(cogs_delta=-0.6)),

    ("tech", 1): EffectEntry("Firmware optimization", E(cogs_delta=-0.1, nps_delta=2)),
    ("tech", 2): EffectEntry("Manufacturing automation tweak", E(cogs_delta=-0.3)),
    ("tech", 3): EffectEntry("Breakthrough battery yield", E(revenue_delta=0.8, cogs_delta=-0.4)),

    ("weather", 1): EffectEntry("Sunny weekend surge", E(revenue_delta=0.3)),
    ("weather", 2): EffectEntry("Early growth season", E(revenue_delta=0.8)),
    ("weather", 3): EffectEntry("Prolonged mowing season", E(revenue_delta=1.2)),
}

SHOCK_TABLE: Dict[Tuple[str, int], EffectEntry] = {
    **{(cat, 0): entry for cat, entry in _SHOCK_NEAR_MISS.items()},
    **_SHOCKS,
}

REWARD_TABLE: Dict[Tuple[str, int], EffectEntry] = {
    **{(cat, 0): entry for cat, entry in _REWARD_NEAR_MISS.items()},
    **_REWARDS,
}
