"""
SteadyText Test Suite

Tests are organized into:
- unit/: Unit tests for normalization, scoring, providers and session state
- integration/: Asyncio tests for the stabilization engine
"""
