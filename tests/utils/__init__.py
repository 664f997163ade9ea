"""
Test Utilities
==============

Common fakes for agents, hosted runs and sinks.
"""

from .mocks import *
