"""LeasePool utilities."""
