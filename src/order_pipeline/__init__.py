"""Queue-backed order intake and persistence pipeline."""

__version__ = "0.1.0"
