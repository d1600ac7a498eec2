"""Point-of-sale and bookkeeping server for a member-run kiosk."""

__version__ = "0.1.0"