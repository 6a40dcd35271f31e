"""
location — Point-in-zone checks.

Sub-modules:
    check_store  — persisted checks and their incident links
    service      — check orchestration (lookup, persist, link, notify)
"""
