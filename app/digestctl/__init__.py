"""digestctl - Assemble a directory tree into a single reviewable digest."""

__version__ = "0.1.0"
