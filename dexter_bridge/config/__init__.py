"""
Configuration Management
=======================

Environment-based configuration using Pydantic Settings.

Components:
- settings: Main application settings and environment configuration
- database: Chat history database connections (SQLite or PostgreSQL)
- logging: Structured logging configuration
"""
