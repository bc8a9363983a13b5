"""Per-dialect adapters.

Adapters are imported on demand by ``sqli.registry.load_drivers`` so that a
missing native driver only disables its own database family.
"""
