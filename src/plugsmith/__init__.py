"""plugsmith - dependency-aware plugin loading from multiple sources."""

__version__ = "0.1.0"
