"""rtbuild — build and install language runtimes from source definitions."""

__version__ = "0.1.0"
