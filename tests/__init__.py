"""
Test Suite
==========

Test suite matching the dexter_bridge/ package structure.

Test Categories:
- unit: Unit tests for individual components
- integration: Streaming bridge and HTTP API tests
"""
