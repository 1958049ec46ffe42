"""
Tests for the template media renderer.
"""
