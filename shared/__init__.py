"""
Shared utilities for the Posts service.

This package holds the building blocks the service is assembled from:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI app factory with health, metrics and middleware

Do not import from service packages into shared/.
"""
