"""
Core domain layer.

Exposes the pure game rules and the built-in decision sources.
"""
