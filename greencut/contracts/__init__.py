"""Contracts: typed records exchanged between the turn engine and its callers.

- types.py: frozen dataclasses for state, caps, signals, events and financial snapshots
- validate.py: strict schema checks applied at the transport boundary
"""
