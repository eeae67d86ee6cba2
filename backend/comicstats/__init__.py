"""ComicRank button server and readership stats engine."""

__version__ = "0.1.0"
