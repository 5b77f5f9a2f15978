"""
Bundle service package.

Turns an npm-style package specifier into a cached, gzip-compressed,
browser-ready bundle.

Structure:
- app.main: FastAPI app, the catch-all bundle route, and wiring.
- app.specifier: Parsing of `[@scope/]name[@tag][/subpath][?query]`.
- app.resolution: Registry metadata schema and tag to version resolution.
- app.caching: Cache keys, cache stores and the coalescing build orchestrator.
- app.adapters: HTTP clients for the registry and the bundle builder.
- app.domain: Response assembly (headers, ETag, CORS).
"""
