"""
Schema cache service package.

A compute-through cache that request handlers put in front of expensive
work. Values are validated against a pydantic schema on every read, kept
fresh for a TTL, served stale for an optional stale-while-revalidate window
while a background refresh runs, and optionally namespaced by a hash of the
schema so a shape change invalidates old entries automatically.

Structure:
- app.adapters: Key-value store adapters (memory, Redis, Cloudflare KV).
- app.execution: Background execution contexts (asyncio, FastAPI).
- app.caching: Codec, version resolver, primitives, orchestrator and the
  CacheManager facade.
"""
