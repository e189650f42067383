"""
Shared utilities for the schema cache layer.

This package aggregates common building blocks consumed by the cache
service package:

- config: Cache settings via pydantic-settings
- logging: Structured logging with trace and request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types
- retry: Retry decorator for transient store failures

Do not import from service packages into shared/.
"""
