"""LeasePool - lease-based work pool coordinator."""

__version__ = "0.1.0"
