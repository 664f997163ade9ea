"""
Core Business Logic
===================

Provider error classification, the agent contract, chat history storage and the
hosted turn runner.
"""
