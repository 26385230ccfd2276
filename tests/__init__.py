"""
ShelfWise Test Suite

Tests are organized into:
- unit/: Unit tests for individual components
- integration/: Pipeline tests wiring real storage with fake external services
"""
