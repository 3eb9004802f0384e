"""
CLI command groups registered on the main entry point.
"""
