"""
Core Module

Domain primitives, shared utilities and the application composition root.
"""
