"""Multi-criteria product decision engine.

Normalizes raw product attributes onto a 0-10 utility scale, resolves
CRITIC + expert hybrid weights, aggregates with a multiplicative utility
so a single deal-breaker suppresses the whole score, and re-scores under
user-selected usage contexts.

Deterministic -- no I/O on the scoring path.
"""
