"""
Configuration — Environment resolution and startup checks.
"""
