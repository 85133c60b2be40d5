"""Counter store adapters.

This package provides a small abstraction layer so the throttle counters can
live in memory (single process) or Redis (shared) without changing the
throttle engine.
"""
