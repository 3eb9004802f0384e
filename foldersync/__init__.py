"""
Folder Sync — One-way periodic mirroring of a source tree onto a replica.
"""

__version__ = "0.1.0"
