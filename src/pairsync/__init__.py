"""pairsync - Bidirectional mirroring of local files and directory trees."""

__version__ = "0.1.0"
