import json
import unittest

from greencut.contracts.types import (
    Caps, CompanyState, DirectCashSpend, EventEcho, EvaluatorOutput, Flags, ImpactChannels,
    Signal, SignalSet,
)
from greencut.events.generator import generate_event
from greencut.finance.drivers import BASELINE_DRIVERS, FinancialDrivers
from greencut.turn.initial import create_initial_state
from greencut.turn.resolver import TurnEngine, resolve_turn
from greencut.turn.spending import detect_cash_spending, resolve_direct_spend


def make_state(**kw):
    base = dict(turn_no=0, morale=70.0, credibility=65.0, backlog=1000.0, service=90.0,
                share=100.0, cash_runway=20.0, flags=Flags(), period="Sep 2025")
    base.update(kw)
    return CompanyState(**base)


def evaluation(penalty=0.0, event_type="none", channels=None, spend=None, **sig):
    return EvaluatorOutput(
        signals=SignalSet(**{k: Signal(*v) for k, v in sig.items()}),
        event=EventEcho(event_type=event_type, impact_channels=channels or ImpactChannels()),
        nonsense_penalty=penalty,
        direct_cash_spend=spend,
    )


class TestDriverMapping(unittest.TestCase):
    def setUp(self):
        self.engine = TurnEngine()

    def test_neutral_turn_keeps_baseline(self):
        d, p, explainers = self.engine.map_drivers(make_state(), "Hold course", evaluation())
        self.assertEqual(d, BASELINE_DRIVERS)
        self.assertEqual(p.scrap_rate, 0.0)
        self.assertEqual(explainers, [])

    def test_morale_lifts_units_and_capex(self):
        d, _, explainers = self.engine.map_drivers(make_state(), "x", evaluation(morale=("up", 1.0)))
        self.assertEqual(d.units_sold, 10_600)
        self.assertAlmostEqual(d.capex_base, 52_500)
        self.assertIn("Higher morale lifted throughput/demand", explainers)

    def test_credibility_moves_price(self):
        d, _, _ = self.engine.map_drivers(make_state(), "x", evaluation(credibility=("down", 0.5)))
        self.assertAlmostEqual(d.avg_price, 99.0)

    def test_backlog_pressure(self):
        d, _, _ = self.engine.map_drivers(
            make_state(), "x", evaluation(morale=("up", 1.0), backlog_pressure=("up", 1.0)))
        self.assertEqual(d.units_sold, 9_752)
        self.assertAlmostEqual(d.dio, 49)
        self.assertAlmostEqual(d.capex_base, 50_000)

    def test_service_risk(self):
        d, p, _ = self.engine.map_drivers(make_state(), "x", evaluation(service_risk=("up", 1.0)))
        self.assertAlmostEqual(p.scrap_rate, 0.03)
        self.assertAlmostEqual(d.dso, 33)

    def test_supply_fragile_and_reg_probe(self):
        st = make_state(flags=Flags(supply_fragile=True))
        d, _, explainers = self.engine.map_drivers(st, "x", evaluation(event_type="reg_probe"))
        self.assertAlmostEqual(d.dio, 48)
        self.assertAlmostEqual(d.dso, 32)
        self.assertIn("Supply fragility extended inventory days", explainers)
        self.assertIn("Regulatory scrutiny stretched receivables", explainers)

    def test_penalty_side_is_stable(self):
        ev = evaluation(penalty=1.0)
        first, _, _ = self.engine.map_drivers(make_state(), "Buy the moon", ev)
        second, _, _ = self.engine.map_drivers(make_state(), "Buy the moon", ev)
        self.assertEqual(first, second)
        trimmed = (first.units_sold == 9_900 and first.avg_price == 100) or \
                  (first.units_sold == 10_000 and abs(first.avg_price - 99.0) < 1e-9)
        self.assertTrue(trimmed)

    def test_event_channels(self):
        channels = ImpactChannels(service_risk=Signal("up", 0.5), backlog_pressure=Signal("up", 0.5))
        d, p, explainers = self.engine.map_drivers(make_state(), "x", evaluation(channels=channels))
        self.assertAlmostEqual(p.scrap_rate, 0.015)
        self.assertEqual(d.units_sold, 9_600)
        self.assertAlmostEqual(d.dio, 47)
        self.assertIn("Event constraints limited fulfillment and inventory turns", explainers)

    def test_drivers_clamped(self):
        big = FinancialDrivers(**{**vars(BASELINE_DRIVERS), "units_sold": 2_000_000, "avg_price": 5})
        d, _, _ = TurnEngine(baseline=big).map_drivers(make_state(), "x", evaluation())
        self.assertEqual(d.units_sold, 1_000_000)
        self.assertEqual(d.avg_price, 10)


class TestResolveTurn(unittest.TestCase):
    def test_deterministic(self):
        st = make_state()
        ev = evaluation(morale=("up", 0.7), credibility=("down", 0.2), penalty=0.3)
        a = resolve_turn(st, "Rally the floor", ev).to_dict()
        b = resolve_turn(st, "Rally the floor", ev).to_dict()
        self.assertEqual(json.dumps(a, sort_keys=True), json.dumps(b, sort_keys=True))

    def test_next_state(self):
        st = make_state()
        r = resolve_turn(st, "Rally the floor", evaluation(morale=("up", 1.0)))
        self.assertEqual(r.turn_no, 1)
        self.assertEqual(r.state_after.turn_no, 1)
        self.assertAlmostEqual(r.state_after.morale, 73.0)
        self.assertIs(r.state_before, st)
        self.assertIs(r.state_after.financials, r.financials)
        self.assertAlmostEqual(r.state_after.pnl.cash, r.financials.balance.cash / 1e6)
        self.assertAlmostEqual(r.state_after.pnl.revenue, r.financials.pnl.revenue / 1e6)

    def test_caps_hold_for_oversized_strength(self):
        st = make_state(morale=99.5, service=0.2)
        ev = evaluation(morale=("up", 1e6), credibility=("down", 1e6), service_risk=("down", 1e6),
                        backlog_pressure=("down", 1e6))
        r = resolve_turn(st, "Everything everywhere", ev)
        self.assertAlmostEqual(r.applied_deltas["credibility"], -2.0)
        self.assertAlmostEqual(r.applied_deltas["backlog"], -250)
        self.assertTrue(0 <= r.state_after.morale <= 100)
        self.assertTrue(0 <= r.state_after.service <= 100)
        self.assertGreaterEqual(r.state_after.backlog, 0)

    def test_custom_caps(self):
        r = resolve_turn(make_state(), "x", evaluation(morale=("up", 1.0)), caps=Caps(morale=1.0))
        self.assertAlmostEqual(r.applied_deltas["morale"], 1.0)

    def test_chaining_uses_prior_close(self):
        st = make_state()
        r1 = resolve_turn(st, "First", evaluation())
        r2 = resolve_turn(r1.state_after, "Second", evaluation())
        self.assertAlmostEqual(r2.financials.cash_open, r1.financials.cash_close)
        self.assertEqual(r2.turn_no, 2)

    def test_recent_moves_keep_two(self):
        st = make_state()
        for move in ("one", "two", "three"):
            st = resolve_turn(st, move, evaluation()).state_after
        self.assertEqual(st.recent_moves, ("two", "three"))

    def test_context_mods_flow_through(self):
        st = make_state(morale=90.0, credibility=70.0, flags=Flags(labor_tense=True))
        r = resolve_turn(st, "Steady hand", evaluation(morale=("up", 0.5), credibility=("up", 0.5)))
        self.assertLess(r.state_after.morale, st.morale)
        self.assertLess(r.state_after.credibility, st.credibility)

    def test_rng_event_booked(self):
        st = make_state()
        ev = generate_event(st, 0)
        r = resolve_turn(st, "Brace", evaluation(), rng_event=ev)
        self.assertEqual(r.rng_event, ev)
        self.assertAlmostEqual(r.state_after.tail_risk, min(100.0, st.tail_risk + ev.tail_risk_bump))
        self.assertEqual(r.to_dict()["rng_event"]["name"], ev.name)

    def test_result_shape(self):
        d = resolve_turn(make_state(), "Hire engineers", evaluation(morale=("up", 0.4))).to_dict()
        for k in ("assessment", "signals", "event", "integrated", "penalties", "policy", "rationale",
                  "deltas", "applied_deltas", "financials", "explainers", "state_after"):
            self.assertIn(k, d)
        self.assertIn("finance", d["explainers"])


class TestDirectSpend(unittest.TestCase):
    def test_detect_amounts(self):
        self.assertEqual(detect_cash_spending("Pay $2M in bonuses to staff").amount, 2_000_000)
        self.assertEqual(detect_cash_spending("500k on staff retreats").amount, 500_000)
        self.assertEqual(detect_cash_spending("3 billion in bonuses").amount, 3_000_000_000)
        self.assertAlmostEqual(detect_cash_spending("We spend 10% of our cash on training").percentage, 0.10)
        self.assertEqual(detect_cash_spending("use all of our cash").percentage, 1.0)
        self.assertIsNone(detect_cash_spending("Hire more engineers"))

    def test_structured_field_wins(self):
        ev = evaluation(spend=DirectCashSpend(amount=500_000))
        spend = resolve_direct_spend(ev, "spend 10% of our cash", 1_000_000)
        self.assertEqual(spend.amount, 500_000)
        self.assertEqual(spend.source, "structured")

    def test_percentage_of_pre_turn_cash(self):
        ev = evaluation(spend=DirectCashSpend(percentage=0.25))
        self.assertEqual(resolve_direct_spend(ev, "", 2_000_000).amount, 500_000)

    def test_text_fallback_in_turn(self):
        r = resolve_turn(make_state(), "Pay $2M in bonuses to staff", evaluation())
        self.assertEqual(r.financials.direct_cash_spend, 2_000_000)
        self.assertIn("Direct cash expenditure: $2.0M (from declaration text)", r.explainers)
        self.assertEqual(r.financials.cash_close, 0.0)
        self.assertFalse(r.financials.cash_recon_ok)

    def test_percentage_in_turn(self):
        r = resolve_turn(make_state(), "We will spend 10% of our cash on training", evaluation())
        self.assertAlmostEqual(r.financials.direct_cash_spend, 100_000)
        self.assertIn("Direct cash expenditure: $0.1M (from declaration text)", r.explainers)

    def test_structured_spend_in_turn(self):
        ev = evaluation(spend=DirectCashSpend(amount=500_000))
        r = resolve_turn(make_state(), "Pay $2M in bonuses to staff", ev)
        self.assertEqual(r.financials.direct_cash_spend, 500_000)
        self.assertIn("Direct cash expenditure: $0.5M", r.explainers)

    def test_no_spend(self):
        r = resolve_turn(make_state(), "Focus on quality", evaluation())
        self.assertEqual(r.financials.direct_cash_spend, 0.0)


class TestInitialState(unittest.TestCase):
    def test_seeded(self):
        a = create_initial_state("alpha")
        self.assertEqual(a, create_initial_state("alpha"))
        self.assertEqual(a.turn_no, 0)
        self.assertTrue(75 <= a.morale < 95)
        self.assertTrue(70 <= a.credibility < 95)
        self.assertTrue(18 <= a.cash_runway < 30)
        self.assertIsNotNone(a.pnl)
        self.assertIsNone(a.financials)


if __name__ == '__main__':
    unittest.main()
