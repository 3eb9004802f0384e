"""
Scheduler — Periodic service loop around single sync passes.
"""
