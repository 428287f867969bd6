"""
Shared utilities for the Budaya Access Layer.

This package aggregates common building blocks consumed by the gateway:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Error taxonomy, upstream error mapping and response envelope
- retry: Retry decorator for idempotent upstream calls
- base_service: FastAPI service skeleton (middleware, health, metrics)

Do not import from service packages into shared/.
"""
