"""State/store layer.

This package is the single place where data pushed by the server (and
REST snapshots) is merged into the latest value per path and source, and
where unit metadata learned from meta deltas is kept.
"""
