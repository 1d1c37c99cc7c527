"""InsureTrack: insurance expiry tracking and reminder emails."""

__version__ = "1.0.0"
