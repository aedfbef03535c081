"""Signal resolution: CEO, event and penalty layers composed into capped KPI deltas.

See `greencut/signals/resolver.py`.
"""
