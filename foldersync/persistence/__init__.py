"""
Persistence — Append-only audit log.
"""
