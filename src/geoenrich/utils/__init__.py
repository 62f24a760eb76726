"""
Utilities Package

Logging configuration and geographic helper functions.
"""
