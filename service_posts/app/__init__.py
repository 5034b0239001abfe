"""
Posts service package.

A small REST service over a single ``posts`` table:
- Credential check: HTTP Basic against one configured identity.
- Rate limiting: in-memory fixed window per client address.
- Response caching: process-local, per-route TTL, invalidated on create.

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.caching: Response cache and per-route policy.
- app.ratelimit: Fixed window limiter and middleware.
- app.domain: Request/response models and the credential check.
- app.persistence: PostgreSQL post store.
"""
