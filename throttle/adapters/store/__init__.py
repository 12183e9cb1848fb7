"""Counter store adapters.

This package provides a small abstraction layer so throttles can start with
an in-memory store and move to Redis or another shared store without
changing throttle logic.
"""
