"""parabench — measure how a test suite scales with execution concurrency."""

__version__ = "0.1.0"
