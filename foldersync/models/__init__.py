"""
Models — Immutable records produced by a sync pass.
"""
