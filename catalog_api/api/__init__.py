"""API layer module.

Contains FastAPI routers, request/response schemas, middleware and the
problem-detail error handlers. Routers are imported by ``main``.
"""
