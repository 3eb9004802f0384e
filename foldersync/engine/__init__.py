"""
Sync Engine — Tree reconciliation and the pass lifecycle.
"""
