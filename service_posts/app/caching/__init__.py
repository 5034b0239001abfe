"""
Posts response caching package.

Holds the process-local response cache and the per-route policy layered on
top of it: fast/slow TTL classes and the keys dropped when a post is created.
"""
