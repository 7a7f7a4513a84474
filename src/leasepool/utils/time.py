"""Time utilities."""

import time


def epoch_now() -> int:
    """Return the current time as whole epoch seconds, the unit stored on items."""
    return int(time.time())
