"""IKS quarterly audit verification backend."""

__version__ = "1.0.0"
