"""Property-based tests for claimcheck.

Properties that must hold for ALL inputs: codec and envelope parsing
never lose data, the dedup cache stays bounded, backoff stays inside
its jitter band, and a client round trip returns exactly what was sent.
"""
