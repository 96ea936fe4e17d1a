"""Build, send and read TSS signing requests held as plain Python dictionaries."""

__version__ = "1.3.1"