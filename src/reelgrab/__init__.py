"""reelgrab - unattended media acquisition core."""

__version__ = "0.1.0"
