"""
MeepleBoard catalog.

Board game catalog reconciliation between the local game store
and the BoardGameGeek XML API.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
