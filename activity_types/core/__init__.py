"""
Core utilities shared across the activity type engine.

This package hosts:
- configuration helpers (env vars, limits)
- logging setup
- the per-owner lock used to serialize batch updates
- the in-process event publisher used after successful batches

Services depend on these primitives instead of reaching for threading,
os.environ or logging configuration themselves.
"""
