"""EventDesk - event registration, admission and waitlist service."""

__version__ = "1.0.0"
