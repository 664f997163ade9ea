"""
HTTP API
========

FastAPI application exposing the streaming chat endpoint.
"""
