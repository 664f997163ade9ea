"""
Data Models
===========

Pydantic models for chat requests, stored turns and API responses.
"""
