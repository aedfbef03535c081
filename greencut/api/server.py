from __future__ import annotations
from typing import Any, Dict
from flask import Flask, request, jsonify
import logging
import os
import time
from collections import deque, defaultdict

from greencut.config.env import get_caps_config, get_finance_config, get_log_config
from greencut.contracts.types import BalanceSheet, CompanyState, EvaluatorOutput, RngEvent
from greencut.contracts.validate import validate_evaluator_output, validate_state
from greencut.finance.drivers import FinancePolicy, FinancialDrivers, FinancialParams, validate_drivers, validate_params
from greencut.finance.engine import compute_financials
from greencut.turn.initial import create_initial_state
from greencut.turn.resolver import TurnEngine

logger = logging.getLogger(__name__)

app = Flask(__name__)

ENGINE = TurnEngine(caps=get_caps_config(), params=get_finance_config())

# Configuration helpers (overridable via app.config in tests)

def _get_api_key() -> str | None:
    if 'API_KEY' in app.config:
        return app.config.get('API_KEY')
    return os.environ.get('API_KEY')


def _get_rate_limit() -> tuple[int, float]:
    n = app.config.get('RATE_LIMIT_N')
    w = app.config.get('RATE_LIMIT_WINDOW_SEC')
    if n is None:
        n = int(os.environ.get('RATE_LIMIT_N', '20'))
    if w is None:
        w = float(os.environ.get('RATE_LIMIT_WINDOW_SEC', '1.0'))
    return int(n), float(w)

_recent: dict[str, deque[float]] = defaultdict(lambda: deque(maxlen=100))


def _client_ip() -> str:
    xff = request.headers.get('X-Forwarded-For')
    if xff:
        return xff.split(',')[0].strip()
    return request.remote_addr or 'anon'


def _check_api_key():
    api_key = _get_api_key()
    if api_key:
        provided = request.headers.get('X-API-Key')
        if provided != api_key:
            return jsonify({'error': 'unauthorized'}), 401
    return None


def _check_rate_limit(ip: str):
    n, window = _get_rate_limit()
    if n <= 0:
        return None
    now = time.time()
    dq = _recent[ip]
    while dq and now - dq[0] > window:
        dq.popleft()
    if len(dq) >= n:
        retry = max(0.0, window - (now - dq[0]))
        resp = jsonify({'error': 'rate_limited'})
        resp.status_code = 429
        resp.headers['Retry-After'] = f"{retry:.2f}"
        return resp
    dq.append(now)
    return None


@app.before_request
def _auth_and_rate_limit():
    unauthorized = _check_api_key()
    if unauthorized is not None:
        return unauthorized
    if request.method == 'POST':
        rl = _check_rate_limit(_client_ip())
        if rl is not None:
            return rl
    return None


def _payload() -> Dict[str, Any]:
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        raise ValueError('request body must be a JSON object')
    return body


@app.errorhandler(ValueError)
def _bad_request(e: ValueError):
    return jsonify({'error': str(e)}), 400


@app.post('/state/initial')
def post_initial_state():
    seed = str(_payload().get('seed') or '')
    if not seed:
        return jsonify({'error': 'seed is required'}), 400
    return jsonify({'state': create_initial_state(seed).to_dict()})


@app.post('/events')
def post_event():
    body = _payload()
    validate_state(body.get('state'))
    turn_index = body.get('turn_index')
    if not isinstance(turn_index, int) or isinstance(turn_index, bool):
        return jsonify({'error': 'turn_index must be an integer'}), 400
    state = CompanyState.from_dict(body['state'])
    return jsonify({'event': ENGINE.generate_event(state, turn_index).to_dict()})


@app.post('/turns')
def post_turn():
    body = _payload()
    declaration = body.get('declaration')
    if not isinstance(declaration, str) or not declaration.strip():
        return jsonify({'error': 'declaration is required'}), 400
    validate_state(body.get('state'))
    validate_evaluator_output(body.get('evaluator_output'))
    state = CompanyState.from_dict(body['state'])
    ev = EvaluatorOutput.from_dict(body['evaluator_output'])
    rng = body.get('rng_event')
    if rng is not None and not isinstance(rng, dict):
        return jsonify({'error': 'rng_event must be an object'}), 400
    result = ENGINE.resolve_turn(state, declaration, ev, RngEvent.from_dict(rng) if rng else None)
    if not result.financials.cash_recon_ok:
        logger.warning("turn %s returned with cash reconciliation drift", result.turn_no)
    return jsonify({'result': result.to_dict()})


@app.post('/financials')
def post_financials():
    body = _payload()
    prior = body.get('prior_balance')
    drivers = body.get('drivers')
    if not isinstance(prior, dict) or not isinstance(drivers, dict):
        return jsonify({'error': 'prior_balance and drivers are required'}), 400
    try:
        d = FinancialDrivers(**{k: float(drivers[k]) for k in (
            'units_sold', 'avg_price', 'unit_cost', 'opex_base', 'capex_base', 'dso', 'dpo', 'dio')})
        p = FinancialParams(**{k: float(v) for k, v in (body.get('params') or {}).items()})
    except (KeyError, TypeError) as e:
        return jsonify({'error': f'invalid drivers or params: {e}'}), 400
    validate_drivers(d)
    validate_params(p)
    policy = FinancePolicy(dividend=bool((body.get('policy') or {}).get('dividend', False)))
    spend = float(body.get('direct_cash_spend') or 0.0)
    snapshot = compute_financials(BalanceSheet.from_dict(prior), d, p, policy, direct_cash_spend=spend)
    return jsonify({'financials': snapshot.to_dict()})


if __name__ == '__main__':
    cfg = get_log_config()
    logging.basicConfig(level=cfg.level, format=cfg.fmt)
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', '8000')))
