"""Territory geometry engine: route buffering, overlap resolution and decay."""

__version__ = "0.1.0"
