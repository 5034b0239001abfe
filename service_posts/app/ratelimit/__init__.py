"""
Rate limiting package for the Posts service.

Holds the in-memory fixed window limiter and the middleware that enforces
per-address request budgets ahead of every guarded route.
"""
