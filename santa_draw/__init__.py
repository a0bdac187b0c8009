"""Secret Santa draw engine: exclusion-aware single-cycle gift assignment."""

__version__ = "0.1.0"
