"""Finance: single-period statements from operating drivers.

- drivers.py: drivers, params, policy, bounds and KPI-to-driver elasticities
- engine.py: P&L, working capital, indirect cash flow, financing and balance checks
"""
