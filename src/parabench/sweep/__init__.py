"""Concurrency sweep subsystem for parabench.

Drives a test subject across ascending concurrency levels, repeats the
sweep over many samples, and reduces the measurements into per-level
distributions with speedup and consistency metrics.
"""
