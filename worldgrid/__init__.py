"""worldgrid - the world grid and village resolution layer."""

__version__ = "0.1.0"
