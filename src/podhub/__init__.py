"""podhub - on-demand GPU pod lifecycle manager."""

__version__ = "0.1.0"
