"""
Domain layer for the CMS gateway: content schemas, validation, field
translation, error health aggregation and the per-route orchestration.
"""
