"""
incidents — Circular alert zones and their lifecycle.

Sub-modules:
    models   — domain dataclasses and coordinate/radius validation
    records  — SQLAlchemy table mappings
    store    — persistence and proximity queries
    cache    — cache-aside list of active zones
    manager  — validated mutations with cache invalidation
"""
