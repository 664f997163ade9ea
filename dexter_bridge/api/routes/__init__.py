"""
API Routes
==========

FastAPI routers for chat streaming and health checks.
"""
