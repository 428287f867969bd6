"""
CMS Gateway Service package for the Budaya Access Layer.

The gateway fronts the cultural-heritage site, enforcing:
- Authentication: bearer tokens via the identity provider, session cookies via the CMS
- Authorization: ownership of heritage items and restricted-role rules
- Rate limiting: per-identity, per-action sliding windows
- Validation, sanitization and field translation before every CMS write

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.state: Injected process-local state (token cache, limiter, health).
- app.adapters: HTTP clients for the CMS and the identity provider.
- app.auth: Service credential cache and caller authentication.
- app.ratelimit: Sliding-window limiter and its rule table.
- app.domain: Content schemas, validation, translation and orchestration.
"""
