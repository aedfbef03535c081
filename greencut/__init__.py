"""GreenCut turn engine: deterministic quarterly company simulation.

Pure transforms from (state, declaration analysis, event) to the next state
and an audited financial snapshot. See `greencut/turn/resolver.py`.
"""
