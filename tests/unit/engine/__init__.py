"""
Engine module tests.
"""
