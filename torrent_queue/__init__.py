"""
torrent-queue
Reconciles a Transmission daemon's torrents into a canonical download queue
and decides which completed downloads may be imported or removed.
"""

__version__ = "1.0.0"
