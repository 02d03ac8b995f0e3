"""Well-Architected check catalog.

One module per pillar; each exposes ``register(registry)``.  Load them
with ``checks.registry.load_builtin_checks()``.
"""
