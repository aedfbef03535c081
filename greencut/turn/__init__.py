"""Turn resolution: one declaration + analysis -> next state and audited statements.

- resolver.py: TurnEngine orchestrating signals, drivers and the financial engine
- spending.py: direct cash spend from the structured field or declaration text
- initial.py: seeded starting state for a new run
"""
