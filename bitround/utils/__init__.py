"""Utility functions for random sources."""

from .rng import RandomSource, as_random_source

__all__ = [
    "RandomSource",
    "as_random_source",
]
