"""Three-round reveal-and-swap card duels."""

__version__ = "0.1.0"
