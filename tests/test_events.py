import unittest
from dataclasses import replace

from greencut.contracts.types import CompanyState, Flags, PnLSummary, RngEvent, RISK_CATEGORIES
from greencut.events.generator import (
    MAX_ACTIVE_EVENTS, canonical_dumps, event_hints, generate_event, generate_event_pair,
    record_event, shock_pressure, stable_hash, tier_from_roll,
)
from greencut.events.tables import REWARD_TABLE, SHOCK_TABLE


def make_state(**kw):
    base = dict(
        turn_no=3, morale=70.0, credibility=65.0, backlog=1200.0, service=88.0,
        share=110.0, cash_runway=20.0, flags=Flags(), pnl=PnLSummary(), period="Sep 2025",
    )
    base.update(kw)
    return CompanyState(**base)


class TestEventGenerator(unittest.TestCase):
    def test_deterministic(self):
        s = make_state()
        self.assertEqual(generate_event(s, 4), generate_event(s, 4))
        self.assertEqual(generate_event_pair(s, 4), generate_event_pair(s, 4))

    def test_key_order_and_number_form(self):
        a = {"morale": 75, "flags": {"supply": 0.1, "labor": 0.05}}
        b = {"flags": {"labor": 0.05, "supply": 0.1}, "morale": 75.0}
        self.assertEqual(canonical_dumps(a), canonical_dumps(b))
        d = make_state().to_dict()
        shuffled = dict(reversed(list(d.items())))
        self.assertEqual(
            generate_event(CompanyState.from_dict(d), 2),
            generate_event(CompanyState.from_dict(shuffled), 2),
        )

    def test_turn_index_changes_draws(self):
        s = make_state()
        rolls = {generate_event(s, i).roll for i in range(10)}
        self.assertGreater(len(rolls), 1)

    def test_stable_hash_salted(self):
        self.assertEqual(stable_hash("abc", "x"), stable_hash("abc", "x"))
        self.assertNotEqual(stable_hash("abc", "x"), stable_hash("abc", "y"))

    def test_tier_thresholds(self):
        cases = {1: 0, 40: 0, 41: 1, 80: 1, 81: 2, 96: 2, 97: 3, 100: 3}
        for roll, tier in cases.items():
            self.assertEqual(tier_from_roll(roll), tier, roll)

    def test_shock_pressure(self):
        self.assertEqual(shock_pressure(make_state()), 7)
        stressed = make_state(morale=50.0, backlog=9000.0, pnl=PnLSummary(cash=1.0))
        self.assertEqual(shock_pressure(stressed), 20)
        # without a P&L summary cash is approximated from runway
        self.assertEqual(shock_pressure(make_state(pnl=None, cash_runway=12.0)), 7)
        self.assertEqual(shock_pressure(make_state(pnl=None, cash_runway=8.0)), 12)

    def test_shock_pressure_rounds_half_up(self):
        flags = Flags(supply=0.125, labor=0.0, competition=0.0, tech=0.0, weather=0.0)
        self.assertEqual(shock_pressure(make_state(flags=flags)), 3)

    def test_event_fields(self):
        for i in range(20):
            ev = generate_event(make_state(morale=55.0), i)
            self.assertTrue(1 <= ev.roll <= 100)
            self.assertIn(ev.event_type, RISK_CATEGORIES)
            self.assertEqual(ev.tier, tier_from_roll(min(100, ev.roll + 12)))
            self.assertEqual(ev.name, SHOCK_TABLE[(ev.event_type, ev.tier)].name)

    def test_reward_draw(self):
        _, reward = generate_event_pair(make_state(), 1)
        self.assertEqual(reward.tier, tier_from_roll(reward.roll))
        self.assertEqual(reward.name, REWARD_TABLE[(reward.event_type, reward.tier)].name)

    def test_tables_complete(self):
        for table in (SHOCK_TABLE, REWARD_TABLE):
            self.assertEqual(len(table), len(RISK_CATEGORIES) * 4)
            for cat in RISK_CATEGORIES:
                for tier in range(4):
                    self.assertIn((cat, tier), table)

    def test_tier_zero_near_miss(self):
        entry = SHOCK_TABLE[("supply", 0)]
        self.assertEqual(entry.name, "Thin ice (supply)")
        self.assertEqual(entry.effects.revenue_delta, 0.0)
        self.assertEqual(entry.tail_risk_bump, 1)

    def test_hints(self):
        s = make_state(
            morale=50.0, backlog=9000.0, pnl=PnLSummary(cash=1.0), tail_risk=25.0,
            flags=Flags(supply=0.5),
        )
        hints = event_hints(s, "supply")
        for h in ("supply_pressure", "morale_low", "backlog_high", "cash_tight", "tail_risk_elevated"):
            self.assertIn(h, hints)
        self.assertEqual(event_hints(make_state(), "quality"), ())


class TestRecordEvent(unittest.TestCase):
    def _event(self, cat, tier):
        e = SHOCK_TABLE[(cat, tier)]
        return RngEvent(roll=50, event_type=cat, tier=tier, name=e.name, effects=e.effects,
                        flag_bump=e.flag_bump, tail_risk_bump=e.tail_risk_bump)

    def test_books_tier_two(self):
        s = make_state()
        ev = self._event("supply", 2)
        out = record_event(s, ev)
        self.assertAlmostEqual(out.tail_risk, s.tail_risk + ev.tail_risk_bump)
        self.assertAlmostEqual(out.flags.supply, s.flags.supply + ev.flag_bump)
        self.assertEqual(len(out.active_shocks), 1)
        self.assertEqual(out.active_shocks[0].decay, "fast")
        self.assertEqual(out.active_shocks[0].name, ev.name)

    def test_tier_three_decays_slowly(self):
        out = record_event(make_state(), self._event("labor", 3))
        self.assertEqual(out.active_shocks[-1].decay, "slow")

    def test_near_miss_not_listed(self):
        s = make_state()
        out = record_event(s, self._event("tech", 0))
        self.assertEqual(out.active_shocks, ())
        self.assertAlmostEqual(out.tail_risk, s.tail_risk + 1)

    def test_bounds(self):
        s = make_state(tail_risk=99.0, flags=Flags(quality=0.95))
        out = record_event(s, self._event("quality", 3))
        self.assertEqual(out.tail_risk, 100.0)
        self.assertEqual(out.flags.quality, 1.0)

    def test_active_list_trimmed(self):
        s = make_state()
        for tier in (1, 2, 3, 1, 2, 3, 1):
            s = record_event(s, self._event("finance", tier))
        self.assertEqual(len(s.active_shocks), MAX_ACTIVE_EVENTS)
        self.assertEqual(s.active_shocks[-1].tier, 1)

    def test_input_untouched(self):
        s = make_state()
        snapshot = replace(s)
        record_event(s, self._event("weather", 2))
        self.assertEqual(s, snapshot)


if __name__ == '__main__':
    unittest.main()
