"""Events: reproducible market shocks and rewards.

- tables.py: (category, tier) -> effect records for shocks and rewards
- generator.py: hash-seeded rolls, shock pressure, tier mapping, hints
"""
